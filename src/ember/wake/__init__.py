"""Wake prompt generation: token estimation, packing, compression and assembly."""

from ember.wake.assembler import WakePrompt, assemble
from ember.wake.compression import (
    CompressedResult,
    CompressionCapability,
    CompressionError,
    ExtractiveCompressor,
    LLMCompressor,
)
from ember.wake.estimator import TokenEstimator
from ember.wake.packer import PackResult, pack
from ember.wake.service import WakePromptService, build_compressor

__all__ = [
    "CompressedResult",
    "CompressionCapability",
    "CompressionError",
    "ExtractiveCompressor",
    "LLMCompressor",
    "PackResult",
    "TokenEstimator",
    "WakePrompt",
    "WakePromptService",
    "assemble",
    "build_compressor",
    "pack",
]
