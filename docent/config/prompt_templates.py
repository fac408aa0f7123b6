"""
Docent - Prompt Templates & Fixed Answers
==========================================
All prompt text and canned answers live here so they can be reviewed
and tuned independently of the answering logic.

Exports
-------
RAG_PROMPT_TEMPLATE, CONTEXT_BLOCK_TEMPLATE, DIRECT_PROMPT_TEMPLATE,
NO_CONTEXT_ANSWER, APOLOGY_ANSWER.
"""

# ══════════════════════════════════════════════════════════════════════
#  RAG PROMPT
# ══════════════════════════════════════════════════════════════════════

RAG_PROMPT_TEMPLATE: str = """Use this information to answer the question. Provide only factual information, do not ask follow-up questions.

{context}

Question: {question}

Answer with facts only:"""

CONTEXT_BLOCK_TEMPLATE: str = "[Source: {source}]\n{content}"


# ══════════════════════════════════════════════════════════════════════
#  DIRECT PROMPT (retrieval disabled)
# ══════════════════════════════════════════════════════════════════════

DIRECT_PROMPT_TEMPLATE: str = """Question: {question}

Answer with facts only:"""


# ══════════════════════════════════════════════════════════════════════
#  FIXED ANSWERS
# ══════════════════════════════════════════════════════════════════════

NO_CONTEXT_ANSWER: str = "Sorry, I could not find relevant information to answer your question."

APOLOGY_ANSWER: str = "I apologize, but I couldn't generate a proper response to your question. Please try rephrasing or asking a different question."
