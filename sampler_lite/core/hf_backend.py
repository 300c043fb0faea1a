"""
Inference collaborator over a Hugging Face causal language model.
"""

from typing import Dict, Optional, Sequence, Union

import torch
from transformers import PreTrainedModel, PreTrainedTokenizerBase


class HFInferenceBackend:
    """Runs a ``transformers`` causal LM and exposes per-position scores.

    Every ``evaluate`` call recomputes the full sequence; there is no KV cache.

    Attributes:
        model: Causal language model
        tokenizer: Matching tokenizer
        device: Device the model runs on
    """

    def __init__(
        self,
        model: PreTrainedModel,
        tokenizer: PreTrainedTokenizerBase,
        device: Union[str, torch.device] = "cpu",
    ):
        """Initialize HFInferenceBackend.

        Args:
            model: Causal language model (moved to ``device`` and set to eval)
            tokenizer: Tokenizer whose vocabulary matches the model
            device: Device to run inference on ("cpu" or "cuda")
        """
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.model.eval()
        self.tokenizer = tokenizer
        self._logits: Optional[torch.Tensor] = None
        self._pieces: Dict[int, str] = {}

    def evaluate(self, token_ids: Sequence[int]) -> None:
        """Run a forward pass over ``token_ids`` and keep the logits.

        Raises:
            ValueError: If token_ids is empty
        """
        if len(token_ids) == 0:
            raise ValueError("token_ids cannot be empty")

        input_ids = torch.tensor([list(token_ids)], dtype=torch.long, device=self.device)
        with torch.no_grad():
            outputs = self.model(input_ids)
        self._logits = outputs.logits[0].float().cpu()

    def scores_for_position(self, index: int) -> torch.Tensor:
        """Logits of an evaluated position (negative indices count from the end).

        Raises:
            RuntimeError: If evaluate has not been called
        """
        if self._logits is None:
            raise RuntimeError("evaluate must be called before reading scores")
        return self._logits[index]

    def vocab_size(self) -> int:
        if self._logits is not None:
            return int(self._logits.shape[-1])
        return int(self.model.config.vocab_size)

    def token_to_text(self, token_id: int) -> str:
        piece = self._pieces.get(token_id)
        if piece is None:
            piece = self.tokenizer.decode([token_id])
            self._pieces[token_id] = piece
        return piece

    def newline_token_id(self) -> Optional[int]:
        ids = self.tokenizer.encode("\n", add_special_tokens=False)
        return ids[0] if len(ids) == 1 else None

    def eos_token_id(self) -> Optional[int]:
        return self.tokenizer.eos_token_id
