"""Import of completed downloads into the library.

The import manager owns the import-phase fields of an acquisition record
(``state`` from ``importing`` onwards, ``import_path``, ``last_error`` and
``completed_at``). Every import either moves all planned files or none:
a filesystem error rolls back the moves already made and leaves the
download untouched for a later retry.
"""

import os
import posixpath
import shutil
from typing import TYPE_CHECKING

import anyio
from asyncer import asyncify

from .. import config, logger
from ..indexers import MediaKind
from ..mediafiles import DownloadFiles, MediaFile, classify_download, remove_empty_dirs, subtitle_suffix
from ..naming import NamingContext, render_template, sanitize_component
from ..release import ParsedRelease, parse
from .models import (
    AcquisitionRecord,
    CurrentFile,
    ImportHistoryEntry,
    ImportOutcome,
    ImportStatus,
    LibraryItem,
    RecordState,
    utcnow,
)

if TYPE_CHECKING:
    from ..config import NamingConfig
    from ..db import LibraryStore
    from ..notifier import Notifier
    from ..scanner import LibraryScanner

EXTRAS_FOLDER = "Extras"
_BACKUP_SUFFIX = ".reelgrab-old"


class AmbiguousMatchError(Exception):
    """Raised when files cannot be confidently tied to library entries."""


class PlannedMove:
    """One file move of an import plan."""

    __slots__ = ("backup", "destination", "source")

    def __init__(self, source: str, destination: str) -> None:
        self.source = source
        self.destination = destination
        self.backup: str | None = None

    def __repr__(self) -> str:
        return f"PlannedMove({self.source!r} -> {self.destination!r})"


def _within(root: str, path: str) -> bool:
    root = os.path.abspath(root)
    return os.path.commonpath([root, os.path.abspath(path)]) == root


def _execute_moves(moves: list[PlannedMove], replace_existing: bool) -> None:
    """Move files in order, undoing everything on the first failure.

    Raises:
        OSError: After rollback, with the original error.
    """
    done: list[PlannedMove] = []
    try:
        for move in moves:
            os.makedirs(os.path.dirname(move.destination), exist_ok=True)
            if os.path.lexists(move.destination):
                if not replace_existing:
                    raise FileExistsError(f"Destination exists: {move.destination}")
                move.backup = move.destination + _BACKUP_SUFFIX
                os.replace(move.destination, move.backup)
            shutil.move(move.source, move.destination)
            done.append(move)
    except OSError:
        _rollback(done, moves)
        raise

    for move in moves:
        if move.backup:
            try:
                os.remove(move.backup)
            except OSError as e:
                logger.warning("Could not remove replaced file %s: %s", move.backup, e)


def _rollback(done: list[PlannedMove], moves: list[PlannedMove]) -> None:
    for move in reversed(done):
        try:
            os.makedirs(os.path.dirname(move.source), exist_ok=True)
            shutil.move(move.destination, move.source)
        except OSError as e:
            logger.error("Rollback of %s failed: %s", move, e)
    for move in moves:
        if move.backup and os.path.lexists(move.backup):
            try:
                os.replace(move.backup, move.destination)
            except OSError as e:
                logger.error("Could not restore %s: %s", move.destination, e)


def _unique_path(path: str) -> str:
    candidate = path
    counter = 1
    while os.path.lexists(candidate):
        candidate = f"{path} ({counter})"
        counter += 1
    return candidate


def _quarantine(source: str, unmatched_dir: str, name: str) -> str:
    os.makedirs(unmatched_dir, exist_ok=True)
    destination = _unique_path(posixpath.join(unmatched_dir, name))
    shutil.move(source, destination)
    return destination


def _remove_file(path: str) -> None:
    if os.path.lexists(path):
        os.remove(path)


class ImportManager:
    """Turns a completed download into correctly named library files."""

    def __init__(
        self,
        database: "LibraryStore",
        scanner: "LibraryScanner | None" = None,
        notifier: "Notifier | None" = None,
    ) -> None:
        self.database = database
        self.scanner = scanner
        self.notifier = notifier
        self._dir_locks: dict[str, anyio.Lock] = {}

    def _lock_for(self, directory: str) -> anyio.Lock:
        key = os.path.abspath(directory)
        if key not in self._dir_locks:
            self._dir_locks[key] = anyio.Lock()
        return self._dir_locks[key]

    async def import_record(
        self, record: AcquisitionRecord, download_path: str | None = None
    ) -> ImportOutcome:
        """Import the files of a completed download.

        Args:
            record: Record in the ``importing`` state.
            download_path: Downloaded file or folder, defaults to the
                record's ``download_path``.

        Returns:
            ImportOutcome: Imported, unmatched, failed, or skipped when the
                record is no longer importing.
        """
        current = await self.database.get_record(record.id)
        if current is None or current.state is not RecordState.IMPORTING:
            logger.debug("Record %d is not importing, skipping import", record.id)
            return ImportOutcome(status=ImportStatus.SKIPPED)

        source = download_path or current.download_path
        if not source:
            return await self._fail(current, "", "Download path is unknown")

        logger.section("Importing %s", current.release_title or current.title)
        library = config.cfg.library
        try:
            files = await asyncify(classify_download)(source, library.sample_size_bytes)
        except OSError as e:
            return await self._fail(current, source, f"Cannot read download: {e}")

        if not files.videos:
            return await self._fail(current, source, "No video files found in download")
        for sample in files.samples:
            logger.debug("Skipping sample file %s", sample.relative)

        release = parse(current.release_title or files.primary.stem)
        item = await self._resolve_library_item(current, release)
        if item is None:
            return await self._quarantine(current, source, "No matching library item")

        naming = await self.database.get_naming_templates()
        try:
            moves, destination_dir, primary_destination = await self._plan(
                item, release, files, naming
            )
        except AmbiguousMatchError as e:
            return await self._quarantine(current, source, str(e))

        for move in moves:
            if not _within(destination_dir, move.destination):
                return await self._fail(
                    current, source, f"Destination escapes library folder: {move.destination}"
                )

        if not library.replace_existing:
            for move in moves:
                if await anyio.Path(move.destination).exists():
                    return await self._fail(
                        current, source, f"Destination already exists: {move.destination}"
                    )

        async with self._lock_for(destination_dir):
            try:
                await asyncify(_execute_moves)(moves, library.replace_existing)
            except OSError as e:
                return await self._fail(current, source, f"Move failed: {e}")

        return await self._complete(current, source, moves, destination_dir, primary_destination)

    # region Resolution and planning

    async def _resolve_library_item(
        self, record: AcquisitionRecord, release: ParsedRelease
    ) -> LibraryItem | None:
        wanted = await self.database.get_wanted_item(record.wanted_id)
        if wanted is not None and wanted.library_item_id is not None:
            item = await self.database.get_library_item(wanted.library_item_id)
            if item is not None:
                return item
        if record.media_id is not None:
            item = await self.database.get_library_item(record.media_id)
            if item is not None:
                return item

        title = wanted.title if wanted is not None else release.title
        year = wanted.year if wanted is not None and wanted.year else release.year
        episode = release.episodes[0] if release.episodes else None
        return await self.database.find_library_item(title, year, release.season, episode)

    def _item_folder(self, item: LibraryItem, folder: str) -> str:
        if item.path:
            return item.path
        library = config.cfg.library
        if item.root_folder:
            root = item.root_folder
        else:
            root = library.movies_dir if item.media_kind is MediaKind.MOVIE else library.tv_dir
        return posixpath.join(root, folder)

    async def _context(
        self, item: LibraryItem, release: ParsedRelease, season: int | None, episodes: tuple[int, ...]
    ) -> NamingContext:
        episode_titles = []
        if season is not None:
            for number in episodes:
                info = await self.database.get_episode(item.id, season, number)
                if info is not None and info.title and info.title not in episode_titles:
                    episode_titles.append(info.title)
        return NamingContext(
            title=item.title,
            year=item.year or release.year,
            season=season,
            episodes=episodes,
            episode_title=" + ".join(episode_titles),
            air_date=release.air_date,
            resolution=release.resolution.value,
            source=release.source.value,
            codec=release.codec.value,
            release_group=release.release_group or "",
            edition=release.edition.value,
        )

    async def _plan(
        self,
        item: LibraryItem,
        release: ParsedRelease,
        files: DownloadFiles,
        naming: "NamingConfig",
    ) -> tuple[list[PlannedMove], str, str]:
        """Work out every move of the import.

        Returns:
            tuple: Planned moves, the item's destination folder and the
                destination of the primary file.

        Raises:
            AmbiguousMatchError: If episodes cannot be assigned to files.
        """
        base_ctx = await self._context(item, release, release.season, release.episodes)
        if item.media_kind is MediaKind.MOVIE:
            item_dir = self._item_folder(item, render_template(naming.movie_folder, base_ctx))
            videos = [(files.primary, posixpath.join(item_dir, render_template(naming.movie_file, base_ctx)))]
            extras_dir = posixpath.join(item_dir, EXTRAS_FOLDER)
        else:
            item_dir = self._item_folder(item, render_template(naming.series_folder, base_ctx))
            videos = await self._plan_episodes(item, release, files, naming, item_dir)
            extras_dir = posixpath.join(item_dir, EXTRAS_FOLDER)

        moves = []
        for video, base in videos:
            moves.append(PlannedMove(video.path, base + video.extension))
        moves.extend(self._plan_subtitles(files.subtitles, videos))
        for extra in files.extras:
            moves.append(
                PlannedMove(extra.path, posixpath.join(extras_dir, sanitize_component(extra.name)))
            )

        destinations = [move.destination for move in moves]
        if len(destinations) != len(set(destinations)):
            raise AmbiguousMatchError("Several files map to the same destination")
        return moves, item_dir, moves[0].destination

    async def _plan_episodes(
        self,
        item: LibraryItem,
        release: ParsedRelease,
        files: DownloadFiles,
        naming: "NamingConfig",
        series_dir: str,
    ) -> list[tuple[MediaFile, str]]:
        planned = []
        single = len(files.videos) == 1
        for video in sorted(files.videos, key=lambda f: f.relative):
            parsed = parse(video.stem)
            season = parsed.season if parsed.season is not None else release.season
            episodes = parsed.episodes or (release.episodes if single else ())
            air_date = parsed.air_date or release.air_date
            if season is None and air_date is None:
                raise AmbiguousMatchError(f"No season for {video.relative}")
            if not episodes and air_date is None:
                raise AmbiguousMatchError(f"No episode number for {video.relative}")

            ctx = await self._context(item, release, season, episodes)
            if air_date is not None and not episodes:
                ctx.air_date = air_date
                template = naming.daily_file
            else:
                template = naming.episode_file
            folder = series_dir
            if season is not None:
                folder = posixpath.join(series_dir, render_template(naming.season_folder, ctx))
            planned.append((video, posixpath.join(folder, render_template(template, ctx))))
        return planned

    @staticmethod
    def _plan_subtitles(
        subtitles: list[MediaFile], videos: list[tuple[MediaFile, str]]
    ) -> list[PlannedMove]:
        """Place each subtitle beside the video it belongs to."""
        moves = []
        used: set[str] = set()
        for subtitle in subtitles:
            base = videos[0][1]
            if len(videos) > 1:
                sub_episodes = parse(subtitle.stem).episodes
                for video, video_base in videos:
                    if subtitle.stem.startswith(video.stem) or (
                        sub_episodes and sub_episodes == parse(video.stem).episodes
                    ):
                        base = video_base
                        break
                else:
                    logger.debug("Subtitle %s matches no episode, skipping", subtitle.relative)
                    continue
            suffix = subtitle_suffix(subtitle.name)
            destination = base + suffix
            counter = 1
            while destination in used:
                destination = f"{base}.{counter}{suffix}"
                counter += 1
            used.add(destination)
            moves.append(PlannedMove(subtitle.path, destination))
        return moves

    # endregion

    # region Outcomes

    async def _complete(
        self,
        record: AcquisitionRecord,
        source: str,
        moves: list[PlannedMove],
        destination_dir: str,
        primary_destination: str,
    ) -> ImportOutcome:
        record.import_path = primary_destination
        record.last_error = None
        record.completed_at = utcnow()
        record.transition(RecordState.IMPORTED, f"Imported {len(moves)} file(s)")
        await self.database.update_record(record)
        await self._add_history(
            record, ImportStatus.IMPORTED, source, primary_destination, moves=moves
        )
        logger.success("Imported %s to %s", record.release_title, primary_destination)

        await self._replace_current_file(record, primary_destination)

        if config.cfg.library.delete_empty_dirs and await anyio.Path(source).is_dir():
            removed = await asyncify(remove_empty_dirs)(source)
            logger.debug("Removed %d empty folder(s) under %s", removed, source)

        if self.scanner is not None:
            await self.scanner.scan_path(destination_dir)
        if self.notifier is not None:
            await self.notifier.send_import_success(record.title, primary_destination)

        return ImportOutcome(
            status=ImportStatus.IMPORTED,
            destination=primary_destination,
            moved=tuple(move.destination for move in moves),
        )

    async def _replace_current_file(self, record: AcquisitionRecord, new_path: str) -> None:
        """Remember the new file on the wanted item, deleting an upgraded one."""
        wanted = await self.database.get_wanted_item(record.wanted_id)
        if wanted is None:
            return
        old = wanted.current_file
        if old is not None and old.path and old.path != new_path:
            try:
                await asyncify(_remove_file)(old.path)
                logger.info("Removed upgraded file %s", old.path)
            except OSError as e:
                logger.warning("Could not remove upgraded file %s: %s", old.path, e)
        if record.score is not None and record.tier is not None:
            wanted.current_file = CurrentFile(record.score, record.tier, new_path)
        await self.database.update_wanted_item(wanted)

    async def _quarantine(
        self, record: AcquisitionRecord, source: str, reason: str
    ) -> ImportOutcome:
        unmatched_dir = config.cfg.library.unmatched_dir
        name = sanitize_component(record.release_title or posixpath.basename(source.rstrip("/")))
        try:
            destination = await asyncify(_quarantine)(source, unmatched_dir, name)
        except OSError as e:
            return await self._fail(record, source, f"{reason}; quarantine failed: {e}")

        record.import_path = destination
        record.last_error = reason
        record.completed_at = utcnow()
        record.transition(RecordState.UNMATCHED, reason)
        await self.database.update_record(record)
        await self._add_history(record, ImportStatus.UNMATCHED, source, destination, error=reason)
        logger.warning("Moved %s to unmatched: %s", record.release_title, reason)

        if self.notifier is not None:
            await self.notifier.send_import_failure(
                record.release_title or record.title, reason, unmatched=True
            )
        return ImportOutcome(
            status=ImportStatus.UNMATCHED, destination=destination, moved=(destination,), error=reason
        )

    async def _fail(self, record: AcquisitionRecord, source: str, reason: str) -> ImportOutcome:
        record.last_error = reason
        record.transition(RecordState.FAILED, reason)
        await self.database.update_record(record)
        await self._add_history(record, ImportStatus.FAILED, source, None, error=reason)
        logger.error("Import of %s failed: %s", record.release_title or record.id, reason)

        if self.notifier is not None:
            await self.notifier.send_import_failure(record.release_title or record.title, reason)
        return ImportOutcome(status=ImportStatus.FAILED, error=reason)

    async def _add_history(
        self,
        record: AcquisitionRecord,
        status: ImportStatus,
        source: str,
        destination: str | None,
        moves: list[PlannedMove] | None = None,
        error: str | None = None,
    ) -> None:
        await self.database.add_history_entry(
            ImportHistoryEntry(
                record_id=record.id,
                status=status,
                release_title=record.release_title or "",
                source_path=source,
                destination_path=destination,
                files=[move.destination for move in moves or []],
                error=error,
            )
        )

    # endregion
