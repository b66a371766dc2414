"""Concrete lending market, yield target and swap adapters."""
