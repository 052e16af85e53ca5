"""
keygen_elf — symbol-store key generator for ELF binaries.

Maps an ELF binary's GNU build-id to the store keys used to look up the
binary itself, its stripped ``.dbg`` companion, and the CoreCLR
diagnostic modules shipped alongside ``libcoreclr.so``.
"""

__version__ = "0.1.0"
KEYGEN_VERSION = "v0"
PACKAGE_NAME = "keygen_elf"
SCHEMA_VERSION = "0.1"
