"""
HealthChat Knowledge Service

Knowledge retrieval for a health consultation chat application: loads the
curated JSON corpus, embeds it through a hosted embedding API and assembles
retrieval-augmented context for the chat model.
"""

__version__ = "1.0.0"
__description__ = "Knowledge retrieval and RAG context for health consultation chat"
