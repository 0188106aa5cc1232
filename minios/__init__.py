"""Parts of a small distributed operating-system simulator: CPU, I/O devices and kernel bookkeeping."""

__version__ = "0.1.0"