"""Built-in quality targets."""

from ..release import AudioFormat, HDRKind, Resolution, Source
from .models import QualityProfile, QualityTarget, QualityTier, TierSetting

_ALL_WEB = (Source.WEBDL, Source.WEBRIP)

BEST_QUALITY = QualityTarget(
    name="Best Quality",
    resolution=Resolution.R2160P,
    min_resolution=Resolution.R1080P,
    sources=(Source.REMUX, Source.BLURAY, *_ALL_WEB),
    hdr_preferences=(HDRKind.DV, HDRKind.HDR10PLUS, HDRKind.HDR10),
    audio_preferences=(AudioFormat.ATMOS, AudioFormat.TRUEHD, AudioFormat.DTSX, AudioFormat.DTSHD),
    min_seeders=3,
    auto_upgrade=True,
    profile=QualityProfile(
        tiers=(
            TierSetting(QualityTier.REMUX_2160P),
            TierSetting(QualityTier.BLURAY_2160P),
            TierSetting(QualityTier.WEBDL_2160P),
            TierSetting(QualityTier.WEBRIP_2160P),
            TierSetting(QualityTier.REMUX_1080P),
            TierSetting(QualityTier.BLURAY_1080P),
            TierSetting(QualityTier.WEBDL_1080P),
        ),
        cutoff=QualityTier.REMUX_2160P,
    ),
)

HIGH_QUALITY = QualityTarget(
    name="High Quality",
    resolution=Resolution.R1080P,
    sources=(Source.BLURAY, *_ALL_WEB),
    hdr_preferences=(HDRKind.DV, HDRKind.HDR10PLUS, HDRKind.HDR10),
    min_seeders=3,
    auto_upgrade=True,
    profile=QualityProfile(cutoff=QualityTier.BLURAY_1080P),
)

BALANCED = QualityTarget(
    name="Balanced",
    resolution=Resolution.R1080P,
    sources=_ALL_WEB,
    min_seeders=1,
    prefer_season_packs=True,
)

STORAGE_SAVER = QualityTarget(
    name="Storage Saver",
    resolution=Resolution.R720P,
    sources=(*_ALL_WEB, Source.HDTV),
    min_seeders=1,
    prefer_season_packs=True,
)

ANIME = QualityTarget(
    name="Anime",
    resolution=Resolution.R1080P,
    sources=(Source.BLURAY, *_ALL_WEB),
    min_seeders=1,
    prefer_dual_audio=True,
    prefer_soft_subs=True,
    auto_upgrade=True,
    min_upgrade_increment=3,
)

PRESETS = {
    preset.name: preset
    for preset in (BEST_QUALITY, HIGH_QUALITY, BALANCED, STORAGE_SAVER, ANIME)
}


def get_preset(name: str) -> QualityTarget:
    """Look up a built-in preset by name, case-insensitively.

    Raises:
        KeyError: If no preset has that name.
    """
    for preset_name, preset in PRESETS.items():
        if preset_name.lower() == name.lower():
            return preset
    raise KeyError(f"Unknown quality preset: {name}")
