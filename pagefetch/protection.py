"""
Heuristic detection of anti-bot interstitials ("protection pages").

The rule is deliberately blunt:
- any known challenge/block signature in the lowercased body -> blocked
- a body shorter than the length floor -> blocked (near-empty shell page)

A legitimately short page cannot be told apart from a block shell, so it is
reported as blocked too. The floor is configurable; set it to 0 to rely on
signatures alone.
"""

DEFAULT_SIGNATURES = (
    "ddos-guard",
    "cf-chl-",
    "access denied",
    "captcha",
    "verify you are human",
    "just a moment",
)

DEFAULT_MIN_LENGTH = 2_000

LENGTH_FLOOR = "length-floor"


class ProtectionDetector:
    def __init__(self, signatures: tuple[str, ...] = DEFAULT_SIGNATURES, min_length: int = DEFAULT_MIN_LENGTH):
        self.signatures = tuple(s.lower() for s in signatures)
        self.min_length = min_length

    def match(self, body: str) -> str | None:
        """Return the reason a body looks blocked (signature or LENGTH_FLOOR), or None."""
        lower = body.lower()
        for signature in self.signatures:
            if signature in lower:
                return signature
        if len(body) < self.min_length:
            return LENGTH_FLOOR
        return None

    def is_blocked(self, body: str) -> bool:
        return self.match(body) is not None

    def signatures_only(self) -> "ProtectionDetector":
        return ProtectionDetector(self.signatures, min_length=0)
