"""
Example demonstrating grammar-constrained sampling with a Hugging Face model.

This example shows how to build a sampling session with a static grammar,
penalties and stopping heuristics, and drive it with the generation loop.
"""

import logging

from transformers import AutoModelForCausalLM, AutoTokenizer

from sampler_lite.core import HFInferenceBackend, SamplingContext, SamplingOrchestrator, generate
from sampler_lite.grammar import GbnfGrammarBackend, TranscriptLogger
from sampler_lite.sampling import SamplingParams
from sampler_lite.stopping import StopChecker, StopPolicy

logging.basicConfig(level=logging.INFO)

MODEL_NAME = "Qwen/Qwen2.5-0.5B"

GRAMMAR = r"""
root ::= "[" item ("," " "? item)* "]"
item ::= [0-9]+
"""

# Load model and tokenizer
print(f"Loading {MODEL_NAME}...")
tokenizer = AutoTokenizer.from_pretrained(MODEL_NAME, trust_remote_code=True)
model = AutoModelForCausalLM.from_pretrained(MODEL_NAME)
backend = HFInferenceBackend(model, tokenizer, device="cpu")

params = SamplingParams(
    temperature=0.7,
    top_k=40,
    penalty_repeat=1.1,
    samplers_sequence="kpmt",
    grammar=GRAMMAR,
    seed=1234,
)
print("\nSampling parameters:")
print(params.describe())
print(params.describe_order())

grammar_backend = GbnfGrammarBackend(backend.token_to_text, backend.eos_token_id())
orchestrator = SamplingOrchestrator(
    backend,
    stop_checker=StopChecker(StopPolicy(sentinel=None)),
    transcript=TranscriptLogger("log.txt"),
)

prompt = "The first five prime numbers as a list: "
prompt_ids = tokenizer.encode(prompt)

with SamplingContext.create(params, backend.token_to_text, grammar_backend) as ctx:
    result = generate(backend, orchestrator, ctx, prompt_ids, max_new_tokens=30)

print(f"\nPrompt: {prompt}")
print(f"Output: {tokenizer.decode(result.token_ids, skip_special_tokens=True)}")
print(f"Finish reason: {result.finish_reason}")
