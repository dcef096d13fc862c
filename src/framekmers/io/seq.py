from typing import Generator, BinaryIO

from framekmers.io import BaseReader


# Classes --------------------------------------------------------------------------------------------------------------
class FastaReader(BaseReader):
    """
    Reader for FASTA format files, yielding ``(id, sequence)`` pairs.

    Examples:
        >>> with open("genome.fasta", "rb") as f:
        ...     for contig_id, sequence in FastaReader(f):
        ...         print(contig_id, len(sequence))
    """
    __slots__ = ('_min_seq_length',)
    _WHITESPACE = b' \t\r\n'

    def __init__(self, handle: BinaryIO, min_seq_length: int = 1, **kwargs):
        super().__init__(handle, **kwargs)
        self._min_seq_length = min_seq_length

    def __iter__(self) -> Generator[tuple[str, str], None, None]:
        for header, seq_parts in self._read_entries():
            name = header.split(None, 1)[0] if header.strip() else b''
            seq = b''.join(seq_parts).translate(None, self._WHITESPACE)
            if len(seq) >= self._min_seq_length:
                yield name.decode('ascii', 'replace'), seq.decode('ascii', 'replace')

    def _read_entries(self):
        """Internal generator that yields (header, seq_parts_list)."""
        buf = b""
        header = None
        seq_parts = []

        for chunk in self.read_chunks(self._CHUNK_SIZE):
            if not chunk:
                if header is not None:
                    if buf: seq_parts.append(buf)
                    yield header, seq_parts
                break

            buf += chunk
            pos = 0

            while True:
                gt_pos = buf.find(b'>', pos)

                if gt_pos == -1:
                    if header is not None: seq_parts.append(buf[pos:])
                    buf = b""
                    break

                if header is not None:
                    seq_parts.append(buf[pos:gt_pos])
                    yield header, seq_parts
                    seq_parts = []
                    header = None

                nl_pos = buf.find(b'\n', gt_pos)
                if nl_pos == -1:
                    buf = buf[gt_pos:]
                    break

                header = buf[gt_pos + 1:nl_pos].rstrip()
                pos = nl_pos + 1
