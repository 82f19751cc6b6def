"""Chunked media recording upload, reassembly and range-streaming server"""

__version__ = "1.0.0"
