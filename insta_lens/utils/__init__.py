from insta_lens.utils.retry import llm_call_with_retry

__all__ = ["llm_call_with_retry"]
