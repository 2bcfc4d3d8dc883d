"""Replace a user's password attributes with a single modify request."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from ldap3 import MODIFY_REPLACE

from ..constants import (
    PASSWORD_SCHEMES,
    SAMBA_OBJECT_CLASS,
    SCHEME_SSHA,
    SHADOW_OBJECT_CLASS,
)
from ..hashes import hash_nt, hash_ssha
from ..models import PasswordCandidate, UserEntry
from .connection import DirectorySession
from .errors import DirectoryError, classify_result

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class EncodedPassword:
    """Attribute values derived from a candidate. Hidden from repr."""
    scheme: str
    user_password: str = field(repr=False)
    nt_hash: Optional[str] = field(default=None, repr=False)


class CredentialMutator:
    """
    Builds and sends the password modify request.

    The storage encoding is chosen explicitly with ``scheme``:

    - ``ssha``: ``userPassword`` is hashed here as ``{SSHA}`` before it leaves
      the process. Use this when the directory stores what it is given.
    - ``cleartext``: ``userPassword`` is sent as-is and the directory hashes
      it on write (e.g. OpenLDAP with ``ppolicy_hash_cleartext``). Only use
      this over ldaps:// or STARTTLS.

    Entries with ``sambaSamAccount`` also get ``sambaNTPassword`` and
    ``sambaPwdLastSet`` when ``samba_nt_hash`` is on; entries with
    ``shadowAccount`` get ``shadowLastChange`` when
    ``update_shadow_last_change`` is on. Everything goes out as one modify.
    """

    def __init__(
        self,
        scheme: str = SCHEME_SSHA,
        samba_nt_hash: bool = True,
        update_shadow_last_change: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        if scheme not in PASSWORD_SCHEMES:
            raise ValueError(f"Unknown password scheme {scheme!r} (expected one of: {', '.join(PASSWORD_SCHEMES)})")
        self.scheme = scheme
        self.samba_nt_hash = samba_nt_hash
        self.update_shadow_last_change = update_shadow_last_change
        self._clock = clock

    def encode(self, candidate: PasswordCandidate) -> EncodedPassword:
        """Consume the candidate and derive every value that may be written."""
        plaintext = candidate.consume()
        user_password = hash_ssha(plaintext) if self.scheme == SCHEME_SSHA else plaintext
        nt = hash_nt(plaintext) if self.samba_nt_hash else None
        return EncodedPassword(scheme=self.scheme, user_password=user_password, nt_hash=nt)

    def build_changes(self, entry: UserEntry, encoded: EncodedPassword) -> Dict[str, List[Tuple[str, List[str]]]]:
        """ldap3 ``changes`` dict for this entry, all MODIFY_REPLACE."""
        now = int(self._clock())
        changes = {"userPassword": [(MODIFY_REPLACE, [encoded.user_password])]}

        if encoded.nt_hash and entry.has_object_class(SAMBA_OBJECT_CLASS):
            changes["sambaNTPassword"] = [(MODIFY_REPLACE, [encoded.nt_hash])]
            changes["sambaPwdLastSet"] = [(MODIFY_REPLACE, [str(now)])]

        if self.update_shadow_last_change and entry.has_object_class(SHADOW_OBJECT_CLASS):
            changes["shadowLastChange"] = [(MODIFY_REPLACE, [str(now // SECONDS_PER_DAY)])]

        return changes

    def change_password(
        self,
        session: DirectorySession,
        entry: UserEntry,
        candidate: Union[PasswordCandidate, EncodedPassword],
    ) -> None:
        """
        Replace the password of ``entry``.

        ``candidate`` may already be encoded, which lets a caller retry the
        same change without holding on to the plaintext.

        Raises:
            StaleEntry: the DN no longer exists (noSuchObject)
            PolicyViolation: the directory rejected the value (``source="server"``)
            DirectoryError: any other directory failure, flagged transient when retryable
            DirectoryConnectionError: the transport failed mid-request
        """
        encoded = candidate if isinstance(candidate, EncodedPassword) else self.encode(candidate)
        changes = self.build_changes(entry, encoded)

        logger.debug("Modifying %s (%s)", entry.distinguished_name, ", ".join(sorted(changes)))
        if session.modify(entry.distinguished_name, changes):
            logger.info("Password replaced for %s", entry.distinguished_name)
            return

        result = session.result
        error = classify_result(result, "modify") or DirectoryError("modify failed", result_code=result.get("result"))
        logger.warning(
            "Modify of %s rejected: %s (code=%s)%s",
            entry.distinguished_name,
            result.get("description") or error.message,
            result.get("result"),
            f": {error.diagnostic}" if error.diagnostic else "",
        )
        raise error

