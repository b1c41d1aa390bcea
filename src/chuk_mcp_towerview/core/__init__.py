"""Core visibility engine, elevation access and job management."""
