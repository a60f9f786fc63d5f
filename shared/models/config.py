from pydantic import BaseModel, model_validator

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client.

    Attributes:
        env_key (str): The raw key of the environment variable, without the client prefix.
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | bool | list | None): Fallback if the variable is not set. None marks the variable as required.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None


class ContextVectorSettings(BaseModel):
    """Tuning values of the context vector pipeline.

    Attributes:
        chunk_size:           Maximum characters per chunk.
        chunk_overlap:        Characters shared between consecutive chunks. Must be smaller than chunk_size.
        embed_batch_size:     Maximum chunks sent to the embedding provider per call.
        embed_concurrency:    Embedding batches allowed in flight at once. 1 keeps runs strictly sequential.
        query_default_limit:  Number of chunks returned by a query when the caller gives no limit.
        max_concurrent_runs:  Background indexing runs allowed at once across all files.
    """

    chunk_size: int = 800
    chunk_overlap: int = 160
    embed_batch_size: int = 100
    embed_concurrency: int = 1
    query_default_limit: int = 10
    max_concurrent_runs: int = 4

    @model_validator(mode="after")
    def _check_bounds(self) -> "ContextVectorSettings":
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}.")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap must be within [0, chunk_size), got {self.chunk_overlap} for chunk_size {self.chunk_size}."
            )
        for name in ("embed_batch_size", "embed_concurrency", "query_default_limit", "max_concurrent_runs"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}.")
        return self

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "ContextVectorSettings":
        """Read all pipeline settings from the environment.

        Args:
            helper_config (HelperConfig): The configuration helper.

        Returns:
            ContextVectorSettings: The validated settings.

        Raises:
            ValueError: If a value is not a number or is out of range.
        """
        return cls(
            chunk_size=int(helper_config.get_number_val("CHUNK_SIZE", default=800)),
            chunk_overlap=int(helper_config.get_number_val("CHUNK_OVERLAP", default=160)),
            embed_batch_size=int(helper_config.get_number_val("EMBED_BATCH_SIZE", default=100)),
            embed_concurrency=int(helper_config.get_number_val("EMBED_BATCH_CONCURRENCY", default=1)),
            query_default_limit=int(helper_config.get_number_val("QUERY_DEFAULT_LIMIT", default=10)),
            max_concurrent_runs=int(helper_config.get_number_val("INDEX_MAX_CONCURRENT_RUNS", default=4)),
        )
