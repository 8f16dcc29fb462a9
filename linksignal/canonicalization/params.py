"""Query parameters stripped during URL normalization.

Only parameters that carry click attribution or subscriber identity are
listed. Parameters that identify content (``id``, ``p``, ``page``, ``v``)
are never stripped.
"""

TRACKING_PARAMS: frozenset[str] = frozenset({
    # UTM family
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    # Ad-click identifiers
    "fbclid",
    "gclid",
    "msclkid",
    "twclid",
    # Email platform subscriber/campaign identifiers
    "mc_cid",
    "mc_eid",
    "ck_subscriber_id",
    "oly_enc_id",
    "oly_anon_id",
    "__s",
    # Generic referral markers
    "ref",
    "ref_src",
    "ref_url",
    "source",
    "trk",
    "trkInfo",
})
