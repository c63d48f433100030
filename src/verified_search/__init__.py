"""
Verification-guided search for LLM answers.

Explores a space of candidate answers and lets independent verifiers score
and prune it. Three search strategies share one verification layer:

- **BeamSearch**: keeps the top-K verified candidates across expansion depths
- **MCTS**: grows a reasoning tree with UCB1 selection and backpropagation
- **DiverseDecoding**: samples widely and keeps a diverse, high-scoring subset (MMR)

## Quick Start
```python
from verified_search import BeamSearch, VerificationRunner
from verified_search.verifiers import DeterministicVerifier

runner = VerificationRunner(
    [(DeterministicVerifier, {"ground_truth": "345", "comparison_type": "numerical"}, 2.0),
     (my_style_verifier, {}, 1.0)],
    parallel=True,
)
result = BeamSearch(beam_width=3, depth=2).search(my_generator, runner, "What is 15*23?")
print(result.best.content, result.best_score, result.stop_reason)
```

## Configuration
```python
from verified_search import Config

config = Config.from_yaml("search.yaml")
runner = VerificationRunner.from_config(verifiers, config.runner)
result = BeamSearch(config.beam).search(generator, runner, prompt)
```
"""

from verified_search.config import (
    Config,
    RunnerConfig,
    SearchConfig,
    BeamSearchConfig,
    MCTSConfig,
    DiverseDecodingConfig,
    SimilarityConfig,
    OutputConfig,
    get_default_config,
)
from verified_search.core import (
    Candidate,
    VerificationResult,
    ScoredCandidate,
    Generator,
    SamplingOptions,
    Verifier,
    FunctionVerifier,
    VerificationRunner,
)
from verified_search.errors import (
    SearchError,
    InvalidConfig,
    GeneratorFailure,
    VerifierFailure,
    AllVerifiersFailed,
    EmptyBeam,
    EmptyCandidatePool,
)
from verified_search.search import (
    BeamSearch,
    MCTS,
    DiverseDecoding,
    SearchResult,
    beam_search,
    mcts_search,
    diverse_decoding,
)

__version__ = "0.1.0"

__all__ = [
    # Search algorithms
    "BeamSearch",
    "MCTS",
    "DiverseDecoding",
    "SearchResult",
    "beam_search",
    "mcts_search",
    "diverse_decoding",

    # Data model and capabilities
    "Candidate",
    "VerificationResult",
    "ScoredCandidate",
    "Generator",
    "SamplingOptions",
    "Verifier",
    "FunctionVerifier",
    "VerificationRunner",

    # Configuration
    "Config",
    "RunnerConfig",
    "SearchConfig",
    "BeamSearchConfig",
    "MCTSConfig",
    "DiverseDecodingConfig",
    "SimilarityConfig",
    "OutputConfig",
    "get_default_config",

    # Errors
    "SearchError",
    "InvalidConfig",
    "GeneratorFailure",
    "VerifierFailure",
    "AllVerifiersFailed",
    "EmptyBeam",
    "EmptyCandidatePool",
]
