"""Send editor selections to LLM backends and write the answers back."""
