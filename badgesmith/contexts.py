# badgesmith/contexts.py
"""
Pinned JSON-LD context documents.

Canonicalization never dereferences @context URLs over the network. The
loader below serves a fixed set of context documents and refuses anything
else, so a credential that points at an unknown context cannot be
canonicalized (and therefore cannot verify).

The credentials context carries an @vocab, so properties without an
explicit term definition still expand to IRIs and take part in the
canonical form instead of being silently dropped.
"""

import copy
import logging
from typing import Any, Dict

from pyld import jsonld

from badgesmith.credential import CREDENTIALS_V2_CONTEXT, OPENBADGES_V3_CONTEXT
from badgesmith.keys import MULTIKEY_CONTEXT


logger = logging.getLogger(__name__)


_CRED = "https://www.w3.org/2018/credentials#"
_SEC = "https://w3id.org/security#"
_OB = "https://purl.imsglobal.org/spec/vc/ob/vocab.html#"
_SCHEMA = "https://schema.org/"
_XSD_DATETIME = "http://www.w3.org/2001/XMLSchema#dateTime"


CREDENTIALS_V2 = {
    "@context": {
        "@vocab": "https://www.w3.org/ns/credentials/issuer-dependent#",
        "id": "@id",
        "type": "@type",
        "name": f"{_SCHEMA}name",
        "description": f"{_SCHEMA}description",
        "VerifiableCredential": f"{_CRED}VerifiableCredential",
        "credentialSubject": {"@id": f"{_CRED}credentialSubject", "@type": "@id"},
        "issuer": {"@id": f"{_CRED}issuer", "@type": "@id"},
        "validFrom": {"@id": f"{_CRED}validFrom", "@type": _XSD_DATETIME},
        "validUntil": {"@id": f"{_CRED}validUntil", "@type": _XSD_DATETIME},
        "evidence": {"@id": f"{_CRED}evidence", "@type": "@id"},
        "proof": {"@id": f"{_SEC}proof", "@type": "@id", "@container": "@graph"},
        "DataIntegrityProof": f"{_SEC}DataIntegrityProof",
        "created": {"@id": "http://purl.org/dc/terms/created", "@type": _XSD_DATETIME},
        "cryptosuite": f"{_SEC}cryptosuite",
        "proofPurpose": {"@id": f"{_SEC}proofPurpose", "@type": "@vocab"},
        "assertionMethod": {"@id": f"{_SEC}assertionMethod", "@type": "@id", "@container": "@set"},
        "proofValue": f"{_SEC}proofValue",
        "verificationMethod": {"@id": f"{_SEC}verificationMethod", "@type": "@id"},
    }
}


OPENBADGES_V3 = {
    "@context": {
        "id": "@id",
        "type": "@type",
        "OpenBadgeCredential": f"{_OB}OpenBadgeCredential",
        "AchievementCredential": f"{_OB}AchievementCredential",
        "AchievementSubject": f"{_OB}AchievementSubject",
        "Achievement": f"{_OB}Achievement",
        "Criteria": f"{_OB}Criteria",
        "Evidence": f"{_OB}Evidence",
        "Image": f"{_OB}Image",
        "Profile": f"{_OB}Profile",
        "achievement": {"@id": f"{_OB}achievement", "@type": "@id"},
        "creator": {"@id": f"{_OB}creator", "@type": "@id"},
        "criteria": {"@id": f"{_OB}criteria", "@type": "@id"},
        "image": {"@id": f"{_OB}image", "@type": "@id"},
        "narrative": f"{_OB}narrative",
        "caption": f"{_SCHEMA}caption",
        "url": {"@id": f"{_SCHEMA}url", "@type": "@id"},
        "email": f"{_SCHEMA}email",
    }
}


MULTIKEY_V1 = {
    "@context": {
        "id": "@id",
        "type": "@type",
        "Multikey": f"{_SEC}Multikey",
        "controller": {"@id": f"{_SEC}controller", "@type": "@id"},
        "publicKeyMultibase": f"{_SEC}publicKeyMultibase",
    }
}


PINNED_CONTEXTS: Dict[str, Dict[str, Any]] = {
    CREDENTIALS_V2_CONTEXT: CREDENTIALS_V2,
    OPENBADGES_V3_CONTEXT: OPENBADGES_V3,
    MULTIKEY_CONTEXT: MULTIKEY_V1,
}


def pinned_document_loader(url: str, options: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    PyLD document loader over the pinned context set.

    Raises:
        jsonld.JsonLdError: For any URL outside the pinned set.
    """
    document = PINNED_CONTEXTS.get(url)
    if document is None:
        logger.debug(f"Refusing to load unpinned context {url}")
        raise jsonld.JsonLdError(
            "Context is not in the pinned context set.",
            "jsonld.LoadDocumentError",
            {"url": url},
            code="loading remote context failed",
        )
    return {
        "contentType": "application/ld+json",
        "contextUrl": None,
        "documentUrl": url,
        "document": copy.deepcopy(document),
    }
