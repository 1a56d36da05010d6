"""Codec, typed-data contract, chain accessors and the verification engine."""
