"""Document synthesis service: Document Intelligence extraction + Azure OpenAI synthesis over SSE."""

__version__ = "1.0.0"
