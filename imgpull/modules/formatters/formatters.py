# formatters.py
# Display helpers for CLI output

def human_readable_size(size):
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"


def short_digest(digest, length=12):
    """Abbreviate 'sha256:abcdef...' to 'sha256:abcdef012345'."""
    algorithm, _, hex_part = digest.partition(":")
    if not hex_part:
        return digest[:length]
    return f"{algorithm}:{hex_part[:length]}"
