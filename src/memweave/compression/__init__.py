from memweave.compression.quantizer import Compressor, QuantizingCompressor, dequantize, quantize
from memweave.compression.bridge import CompressionResult, build_compressor, compress_patterns, layer_for

__all__ = [
    "Compressor",
    "QuantizingCompressor",
    "dequantize",
    "quantize",
    "CompressionResult",
    "build_compressor",
    "compress_patterns",
    "layer_for",
]
