import hashlib
import logging

logger = logging.getLogger(__name__)

BOT_SIGIL = "@"
BOT_SUFFIX = "bot"


class InvalidBotIdentity(ValueError):
    """Raised when the allow-list file holds entries that are not bot usernames."""

    def __init__(self, entries):
        self.entries = list(entries)
        super().__init__(f"Invalid bot usernames: {', '.join(self.entries)}")


# --- Helper Functions ---
def load_lines(path) -> list:
    """Reads a line-delimited file, trimming each line and skipping blank ones."""
    with open(path, encoding="utf-8") as fh:
        return [line.strip() for line in fh.read().splitlines() if line.strip()]


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def bot_identity_problem(identity: str):
    """Returns why `identity` is not a valid bot username, or None."""
    if not identity.startswith(BOT_SIGIL):
        return f"Invalid bot username `{identity}`: must start with `{BOT_SIGIL}`"
    if not identity.lower().endswith(BOT_SUFFIX):
        return f"Invalid bot username `{identity}`: must end with `{BOT_SUFFIX}`"
    return None


# --- Credential Store ---
class CredentialStore:
    """Read-only set of access tokens, kept as SHA-256 digests."""

    def __init__(self, tokens):
        self._digests = frozenset(_digest(t) for t in tokens)

    @classmethod
    def from_file(cls, path):
        store = cls(load_lines(path))
        if not store:
            logger.warning(f"No access tokens found in {path}; every request will be unauthorized.")
        else:
            logger.info(f"Loaded {len(store)} access token(s) from {path}.")
        return store

    def is_valid(self, token: str) -> bool:
        return _digest(token) in self._digests

    def __contains__(self, token):
        return isinstance(token, str) and self.is_valid(token)

    def __len__(self):
        return len(self._digests)


# --- Bot Allow-List ---
class BotAllowList:
    """Read-only set of bot usernames this service may probe."""

    def __init__(self, identities):
        self._identities = frozenset(identities)

    @classmethod
    def from_file(cls, path):
        """Loads and validates the allow-list, reporting every bad entry before failing."""
        identities = load_lines(path)
        invalid = []
        for identity in identities:
            problem = bot_identity_problem(identity)
            if problem:
                logger.error(problem)
                invalid.append(identity)
        if invalid:
            raise InvalidBotIdentity(invalid)
        logger.info(f"Loaded {len(identities)} allow-listed bot(s) from {path}.")
        return cls(identities)

    def is_allowed(self, identity: str) -> bool:
        return identity in self._identities

    def __contains__(self, identity):
        return self.is_allowed(identity)

    def __len__(self):
        return len(self._identities)

    def __iter__(self):
        return iter(sorted(self._identities))
