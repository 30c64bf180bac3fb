"""Convert Erlang ``cover`` data into Cobertura XML reports."""

__version__ = "0.1.0"
