"""legacyxref - structural extraction and cross-referencing for COBOL/JCL systems"""

__version__ = "1.0.0"
