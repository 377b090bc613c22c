"""Fetch and stream logs from Vercel, Fly.io and Supabase through a common connector interface."""

__version__ = "0.6.0"