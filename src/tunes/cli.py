"""
Tunes CLI - Entry point

Subcommands for one-shot library and playback operations, plus an
interactive shell that keeps the library in sync and autoplays.
"""

import argparse
import shlex
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.table import Table

from tunes.core.config import Config, load_config
from tunes.core.output import log, safe_print, setup_from_config
from tunes.domain.library.metadata import format_duration, read_tags
from tunes.domain.library.models import Library, Track
from tunes.domain.library.reconciler import get_music_directory, next_track, previous_track
from tunes.domain.playback.autoplay import AutoplayPoller
from tunes.domain.playback.state import PlaybackState, PlaybackStatus
from tunes.exceptions import TunesError
from tunes.transport import Transport

SHELL_HELP = """Commands:
  list            Show the library
  play N          Play track number N
  pause / resume  Pause or resume playback
  toggle          Pause if playing, resume if paused, replay if stopped
  stop            Stop playback
  next / prev     Play the next or previous track
  status          Show what is playing
  scan            Rescan the music directory
  help            Show this help
  quit            Exit"""


def render_library(library: Library, current_path: Optional[str] = None) -> Table:
    """Build a Rich table of the library."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Time", justify="right")

    for number, track in enumerate(library.tracks, start=1):
        style = "bold green" if track.path == current_path else None
        table.add_row(
            str(number),
            track.display_title,
            track.display_artist,
            track.album or "",
            format_duration(track.duration_secs),
            style=style,
        )
    return table


def describe_state(state: PlaybackState) -> str:
    if state.status is PlaybackStatus.STOPPED:
        return "Stopped"
    position = format_duration(state.position_secs)
    duration = format_duration(state.duration_secs)
    return (
        f"{state.status.value}: {state.current_track_artist} - {state.current_track_title}"
        f" [{position} / {duration}]"
    )


class Shell:
    """Interactive command loop over a Transport."""

    def __init__(self, transport: Transport, config: Config):
        self.transport = transport
        self.config = config
        self.library = Library()
        self._library_lock = threading.Lock()
        self.autoplay = AutoplayPoller(
            transport, self.get_library, on_change=self._on_autoplay
        )

    def get_library(self) -> Library:
        with self._library_lock:
            return self.library

    def set_library(self, library: Library) -> None:
        with self._library_lock:
            self.library = library

    def _on_library_changed(self, library: Library) -> None:
        self.set_library(library)
        log(f"Library updated: {len(library.tracks)} tracks")

    def _on_autoplay(self, track: Optional[Track]) -> None:
        if track is not None:
            safe_print(f"Now playing: {track.display_artist} - {track.display_title}", style="green")
        else:
            safe_print("End of library", style="dim")

    def start(self) -> None:
        self.set_library(self.transport.scan_library())
        if self.config.library.watch:
            try:
                self.transport.watch_library(self._on_library_changed)
            except TunesError as e:
                safe_print(f"Library watching disabled: {e}", style="yellow")
        if self.config.player.autoplay:
            self.autoplay.start()

    def stop(self) -> None:
        self.autoplay.stop()

    def _track_number(self, args: list[str]) -> Optional[Track]:
        library = self.get_library()
        if not args or not args[0].isdigit():
            safe_print("Usage: play N", style="yellow")
            return None
        number = int(args[0])
        if not 1 <= number <= len(library.tracks):
            safe_print(f"No track {number} (library has {len(library.tracks)})", style="yellow")
            return None
        return library.tracks[number - 1]

    def handle(self, command: str, args: list[str]) -> bool:
        """Run one command. Returns False when the shell should exit."""
        if command in ("quit", "exit", "q"):
            return False

        if command == "help":
            safe_print(SHELL_HELP)
        elif command in ("list", "ls"):
            safe_print(render_library(self.get_library(), self.autoplay.current_path))
        elif command == "play":
            track = self._track_number(args)
            if track:
                self.autoplay.select(track)
                safe_print(f"Playing: {track.display_artist} - {track.display_title}", style="green")
        elif command == "pause":
            self.transport.pause()
            self.autoplay.note_status(PlaybackStatus.PAUSED)
        elif command == "resume":
            self.transport.resume()
            self.autoplay.note_status(PlaybackStatus.PLAYING)
        elif command == "toggle":
            self._toggle()
        elif command == "stop":
            self.transport.stop()
            self.autoplay.note_status(PlaybackStatus.STOPPED)
        elif command in ("next", "prev"):
            step = next_track if command == "next" else previous_track
            track = step(self.get_library(), self.autoplay.current_path)
            if track:
                self.autoplay.select(track)
                safe_print(f"Playing: {track.display_artist} - {track.display_title}", style="green")
            else:
                safe_print(f"No {command} track", style="dim")
        elif command == "status":
            safe_print(describe_state(self.transport.get_playback_state()))
        elif command == "scan":
            library = self.transport.scan_library()
            self.set_library(library)
            safe_print(f"Library: {len(library.tracks)} tracks")
        else:
            safe_print(f"Unknown command: {command}. Type 'help' for commands.", style="yellow")
        return True

    def _toggle(self) -> None:
        state = self.transport.get_playback_state()
        if state.status is PlaybackStatus.PLAYING:
            self.transport.pause()
            self.autoplay.note_status(PlaybackStatus.PAUSED)
        elif state.status is PlaybackStatus.PAUSED:
            self.transport.resume()
            self.autoplay.note_status(PlaybackStatus.PLAYING)
        else:
            # Restart the selected track
            library = self.get_library()
            for track in library.tracks:
                if track.path == self.autoplay.current_path:
                    self.autoplay.select(track)
                    break

    def loop(self) -> None:
        safe_print(f"Tunes - {self.transport.get_music_directory()}", style="bold")
        safe_print("Type 'help' for commands.", style="dim")
        while True:
            try:
                line = input("tunes> ")
            except (EOFError, KeyboardInterrupt):
                safe_print("")
                break
            try:
                parts = shlex.split(line)
            except ValueError as e:
                safe_print(f"Could not parse command: {e}", style="yellow")
                continue
            if not parts:
                continue
            try:
                if not self.handle(parts[0].lower(), parts[1:]):
                    break
            except TunesError as e:
                logger.error(f"Command '{line}' failed: {e}")
                safe_print(f"Error: {e}", style="red")


def run_shell(transport: Transport, config: Config) -> int:
    shell = Shell(transport, config)
    try:
        shell.start()
    except TunesError as e:
        safe_print(f"Error: {e}", style="red")
        return 1
    try:
        shell.loop()
    finally:
        shell.stop()
    return 0


def run_scan(transport: Transport) -> int:
    library = transport.scan_library()
    safe_print(render_library(library))
    safe_print(f"{len(library.tracks)} tracks in {transport.get_music_directory()}", style="dim")
    return 0


def run_play(transport: Transport, path: str) -> int:
    """Play one file and wait until it finishes or the user interrupts."""
    file_path = Path(path).expanduser().absolute()
    track = read_tags(file_path)
    if track is not None:
        transport.play_track(
            track.path, track.display_title, track.display_artist, track.duration_secs
        )
    else:
        transport.play_track(str(file_path), file_path.name, "Unknown Artist", 0)

    try:
        time.sleep(0.2)
        state = transport.get_playback_state()
        if state.is_stopped:
            safe_print(f"Could not play {file_path} (see log for details)", style="red")
            return 1
        safe_print(describe_state(state), style="green")
        while not transport.get_playback_state().is_stopped:
            time.sleep(0.5)
    except KeyboardInterrupt:
        transport.stop()
    return 0


def run_watch(transport: Transport) -> int:
    """Print a line every time the library changes, until interrupted."""

    def on_change(library: Library) -> None:
        log(f"Library changed: {len(library.tracks)} tracks")

    library = transport.scan_library()
    safe_print(f"Watching {transport.get_music_directory()} ({len(library.tracks)} tracks)")
    transport.watch_library(on_change)
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the tunes command."""
    parser = argparse.ArgumentParser(
        description="Tunes - local music library and player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")
    subparsers.add_parser("dir", help="Show the music directory")
    subparsers.add_parser("scan", help="Sync the library with the music directory")
    play_parser = subparsers.add_parser("play", help="Play a single file")
    play_parser.add_argument("path", help="Audio file to play")
    subparsers.add_parser("watch", help="Print library changes as they happen")
    subparsers.add_parser("shell", help="Interactive player (default)")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_from_config(config.logging, verbose=args.verbose)

    if args.subcommand == "dir":
        print(get_music_directory(config))
        sys.exit(0)

    transport = Transport(config)
    try:
        if args.subcommand == "scan":
            code = run_scan(transport)
        elif args.subcommand == "play":
            code = run_play(transport, args.path)
        elif args.subcommand == "watch":
            code = run_watch(transport)
        else:
            code = run_shell(transport, config)
    except TunesError as e:
        logger.error(str(e))
        safe_print(f"Error: {e}", style="red")
        code = 1
    finally:
        transport.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
