"""Recursive character chunking of extracted file text."""

DEFAULT_SEPARATORS = ["\n\n", "\n", " ", ""]


class TextChunker:
    """Splits text into overlapping windows of at most chunk_size characters.

    The text is cut at the coarsest separator that occurs in it (paragraphs,
    then lines, then words, then single characters). Neighbouring pieces are
    merged back into windows; the trailing pieces of a window, up to
    chunk_overlap characters, open the next one.
    """

    def __init__(self, chunk_size: int = 800, chunk_overlap: int = 160, separators: list[str] | None = None) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(f"chunk_overlap must be within [0, {chunk_size}), got {chunk_overlap}.")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = separators or DEFAULT_SEPARATORS

    ##########################################
    ################ CORE ####################
    ##########################################

    def split(self, text: str) -> list[str]:
        """Split text into ordered, trimmed, non-empty chunks.

        Args:
            text (str): Normalized document text.

        Returns:
            list[str]: The chunks in document order. Empty for blank input.
        """
        if not text or not text.strip():
            return []
        chunks = self._split_recursive(text.strip(), self.separators)
        return [chunk.strip() for chunk in chunks if chunk.strip()]

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _split_recursive(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        finer: list[str] = []
        for index, candidate in enumerate(separators):
            if candidate == "" or candidate in text:
                separator = candidate
                finer = separators[index + 1:]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [piece for piece in pieces if piece]

        chunks: list[str] = []
        pending: list[str] = []
        for piece in pieces:
            if len(piece) < self.chunk_size:
                pending.append(piece)
                continue
            if pending:
                chunks.extend(self._merge(pending, separator))
                pending = []
            if finer:
                chunks.extend(self._split_recursive(piece, finer))
            else:
                chunks.append(piece)
        if pending:
            chunks.extend(self._merge(pending, separator))
        return chunks

    def _merge(self, pieces: list[str], separator: str) -> list[str]:
        sep_len = len(separator)
        merged: list[str] = []
        window: list[str] = []
        total = 0

        for piece in pieces:
            joined_len = total + len(piece) + (sep_len if window else 0)
            if joined_len > self.chunk_size and window:
                chunk = separator.join(window).strip()
                if chunk:
                    merged.append(chunk)
                # drop leading pieces until the rest fits as overlap and leaves room for the new piece
                while total > self.chunk_overlap or (
                    total > 0 and total + len(piece) + (sep_len if window else 0) > self.chunk_size
                ):
                    total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                    window.pop(0)
            window.append(piece)
            total += len(piece) + (sep_len if len(window) > 1 else 0)

        chunk = separator.join(window).strip()
        if chunk:
            merged.append(chunk)
        return merged
