"""PromQL syntax tree with printing, pretty-printing and type checking, literal and duration parsing, query options and worker groups."""

__version__ = "0.1.0"