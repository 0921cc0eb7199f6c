"""RAG (Retrieval-Augmented Generation) Engine

This package provides the RAG layer of the health consultation service.
It includes components for corpus loading, embedding, indexing, retrieval and
context assembly.
"""
