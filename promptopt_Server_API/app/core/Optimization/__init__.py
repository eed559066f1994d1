"""
Prompt optimization jobs.

Builds training examples from recorded chat sessions, sends them to the
external optimizer service, and persists the outcome (prompt text, latest
complete-optimization record, versioned archive, job status) as flat files.
"""
