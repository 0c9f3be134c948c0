"""Shared configuration and observability for SDR estimation services."""
