"""Generation gateway: the resilient Gemini client and the response normalizer.

  - GeminiClient: retry/backoff around ``generateContent`` (gemini.py)
  - Failure taxonomy (errors.py)
  - Request/response DTOs and retry policy (types.py)
  - Tolerant JSON extraction and truncation repair (normalizer.py)
"""
