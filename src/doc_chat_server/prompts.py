"""
Prompt templates for the chat responder.
"""

CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to a knowledge base built from "
    "the user's uploaded documents (Retrieval-Augmented Generation)."
)

CONTEXT_BLOCK_TEMPLATE = """Here is relevant context from the user's documents:

{context}

Use this context to provide accurate and relevant responses. If the context \
doesn't contain relevant information, you can still provide general assistance \
from your own knowledge."""

NO_CONTEXT_INSTRUCTION = "Provide helpful and accurate responses to user queries."

CLOSING_INSTRUCTION = (
    "Always be concise, helpful, and cite sources when using information "
    "from the provided context."
)
