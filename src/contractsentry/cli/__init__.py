"""Command line interface for ContractSentry."""
