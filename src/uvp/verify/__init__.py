"""Signature verification: key descriptor decoding, per-record checks, batch reports."""
