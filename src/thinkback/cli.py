"""CLI interface for ThinkBack."""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from thinkback import __version__
from thinkback.config import AppConfig, get_config
from thinkback.errors import ThinkBackError
from thinkback.models.note import Note
from thinkback.services.note_store import DateRange, NoteQuery
from thinkback.services.speech import SpeechClip
from thinkback.session import ThinkBackSession

app = typer.Typer(
    name="thinkback",
    help="Personal memory assistant: notes, reminders, quiet hours and voice.",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show and change assistant settings.", no_args_is_help=True)
backup_app = typer.Typer(help="Simulated cloud backup.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")
app.add_typer(backup_app, name="backup")

console = Console()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report ThinkBack errors and exit with status 1."""
    try:
        yield
    except ThinkBackError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def speech_path(config: AppConfig) -> Path:
    return config.database_path.parent / "speech" / "latest.wav"


def get_session(unlock: bool = True) -> ThinkBackSession:
    """Open the session, asking to unlock if biometric lock is on."""
    config = get_config()

    def play(clip: SpeechClip) -> None:
        path = clip.save(speech_path(config))
        console.print(f"  [dim]🔊 Spoken reply saved to {path}[/dim]")

    with handle_errors():
        session = ThinkBackSession.open(config, audio_sink=play)

    if unlock and session.locked:
        if not typer.confirm("ThinkBack is locked. Unlock?", default=True):
            raise typer.Exit(1)
        session.unlock()
    return session


def print_note(note: Note) -> None:
    """Print a single note in full."""
    status = "[green]done[/green]" if note.is_completed else "active"
    lines = [
        f"[bold]Type:[/bold] {note.type.value}    [bold]Status:[/bold] {status}",
        f"[bold]Created:[/bold] {note.created_at:%b %d, %Y %H:%M}    "
        f"[bold]Modified:[/bold] {note.modified_at:%b %d, %Y %H:%M}",
    ]
    if note.has_reminder:
        lines.append(f"[bold]Reminder:[/bold] {note.reminder_time or '(no time)'}")
    if note.tags:
        lines.append(f"[bold]Tags:[/bold] {', '.join(note.tags)}")
    if note.summary:
        lines.append(f"\n[italic]{note.summary}[/italic]")
    lines.append(f"\n{note.content}")
    console.print(Panel("\n".join(lines), title=f"{note.display_title} [dim]({note.id})[/dim]"))


def notes_table(notes: list[Note], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Created", style="green")
    table.add_column("Reminder", style="yellow")
    for note in notes:
        title_text = f"[strike]{note.display_title}[/strike]" if note.is_completed else note.display_title
        table.add_row(
            note.id,
            note.type.value,
            title_text,
            f"{note.created_at:%b %d}",
            (note.reminder_time or "") if note.has_reminder else "",
        )
    return table


# ==================== Notes ====================


@app.command()
def add(
    content: str = typer.Argument(..., help="Note text"),
    title: str = typer.Option("", "--title", "-t", help="Title (default: first line)"),
):
    """Write a text note. The assistant summarizes it and looks for reminders."""
    session = get_session()
    with handle_errors():
        with console.status("[yellow]AI remembering...[/yellow]"):
            note = session.add_text_note(content, title=title)
    if note is None:
        console.print("[yellow]Empty note discarded.[/yellow]")
        raise typer.Exit(0)
    console.print(f"[green]✓[/green] Saved note [bold]{note.display_title}[/bold] ({note.id})")
    if note.has_reminder:
        console.print(f"  [yellow]Reminder detected:[/yellow] {note.reminder_time or 'no time given'}")


@app.command("list")
def list_notes(
    search: str = typer.Option("", "--search", "-s", help="Text to find in title or content"),
    note_type: str = typer.Option("all", "--type", help="all, text, voice or scan"),
    date_range: DateRange = typer.Option(DateRange.ALL, "--range", "-r", help="Creation date filter"),
):
    """List notes, most recent first."""
    session = get_session()
    with handle_errors():
        try:
            query = NoteQuery(text=search, note_type=note_type, date_range=date_range)
        except ValueError:
            console.print(f"[red]Unknown note type: {note_type}[/red]")
            raise typer.Exit(1)
        notes = session.notes.query(query)

    if not notes:
        console.print("[yellow]No notes found.[/yellow]")
        raise typer.Exit(0)

    heading = "Quiet Mode Active" if session.is_quiet() else "Your Digital Mind"
    console.print(notes_table(notes, f"{heading} ({len(notes)} found)"))


@app.command()
def show(note_id: str = typer.Argument(..., help="Note ID")):
    """Show a note in full."""
    session = get_session()
    with handle_errors():
        print_note(session.notes.get(note_id))


@app.command()
def edit(
    note_id: str = typer.Argument(..., help="Note ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="New content"),
    append_audio: Optional[Path] = typer.Option(
        None, "--dictate", help="Append a transcription of this audio file"
    ),
):
    """Edit a note and re-run the assistant on it."""
    session = get_session()
    with handle_errors():
        draft = session.edit_note(note_id)
        if append_audio is not None:
            session.start_voice_append()
            with console.status("[yellow]Transcribing...[/yellow]"):
                draft = session.capture_voice(append_audio.read_bytes(), _audio_mime(append_audio))
        new_title = draft.title if title is None else title
        new_content = draft.content if content is None else content
        with console.status("[yellow]AI remembering...[/yellow]"):
            note = session.save_draft(draft, new_title, new_content)
    if note is None:
        console.print("[yellow]Nothing to save.[/yellow]")
        raise typer.Exit(0)
    console.print(f"[green]✓[/green] Updated [bold]{note.display_title}[/bold]")


@app.command()
def done(note_id: str = typer.Argument(..., help="Note ID")):
    """Toggle a note between done and active."""
    session = get_session()
    with handle_errors():
        note = session.toggle_completed(note_id)
    state = "[green]done[/green]" if note.is_completed else "active again"
    console.print(f"[bold]{note.display_title}[/bold] marked {state}")


@app.command()
def remind(
    note_id: str = typer.Argument(..., help="Note ID"),
    when: Optional[str] = typer.Argument(None, help='Time, e.g. "tomorrow 9am"'),
    exact: bool = typer.Option(False, "--exact", help="Store the time as typed"),
):
    """Set or reschedule a reminder on a note."""
    session = get_session()
    with handle_errors():
        if when and not exact:
            with console.status("[yellow]Understanding time...[/yellow]"):
                note = session.reschedule_reminder(note_id, when)
        else:
            note = session.set_reminder(note_id, when)
    if note is None:
        console.print("[yellow]Reminder not changed.[/yellow]")
        raise typer.Exit(0)
    console.print(f"[green]✓[/green] Reminder for [bold]{note.display_title}[/bold]: {note.reminder_time}")


@app.command()
def reminders():
    """Show active reminders for today and later."""
    session = get_session()
    today, upcoming = session.notes.split_reminders()

    if not today and not upcoming:
        console.print("[green]No active reminders.[/green]")
    if today:
        console.print(notes_table(today, "Today"))
    if upcoming:
        console.print(notes_table(upcoming, "Upcoming"))
    console.print(f"[dim]Completed reminders: {session.notes.completed_reminder_count()}[/dim]")


@app.command()
def delete(
    note_id: str = typer.Argument(..., help="Note ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a note."""
    session = get_session()
    if not yes and not typer.confirm(f"Delete note {note_id}?"):
        raise typer.Exit(0)
    with handle_errors():
        removed = session.delete_note(note_id)
    if removed:
        console.print(f"[green]✓[/green] Deleted {note_id}")
    else:
        console.print(f"[yellow]No note {note_id}; nothing deleted.[/yellow]")


# ==================== Capture ====================


def _audio_mime(path: Path) -> str:
    return {
        ".mp3": "audio/mp3",
        ".ogg": "audio/ogg",
        ".flac": "audio/flac",
        ".m4a": "audio/aac",
        ".aac": "audio/aac",
    }.get(path.suffix.lower(), "audio/wav")


def _image_mime(path: Path) -> str:
    return {".png": "image/png", ".webp": "image/webp"}.get(path.suffix.lower(), "image/jpeg")


@app.command()
def dictate(audio: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recorded audio")):
    """Create a voice note from a recording."""
    session = get_session()

    with handle_errors():
        with console.status("[yellow]Listening...[/yellow]") as status:
            text = session.transcribe(
                audio.read_bytes(),
                _audio_mime(audio),
                on_progress=lambda t: status.update(f"[yellow]{t[-60:]}[/yellow]"),
            )
        if not text:
            console.print("[yellow]No speech recognized.[/yellow]")
            raise typer.Exit(0)
        note = session.complete_voice_capture(text)
    console.print(f"[green]✓[/green] Saved [bold]{note.display_title}[/bold] ({note.id})")


@app.command()
def scan(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Photo or document image"),
    mode: str = typer.Option("scan", "--mode", "-m", help="scan, card or photo"),
):
    """Create a note from a document scan, business card or photo."""
    session = get_session()
    with handle_errors():
        with console.status("[yellow]Reading capture...[/yellow]"):
            note = session.capture_scan(image.read_bytes(), mode, _image_mime(image))
    console.print(f"[green]✓[/green] Saved scan [bold]{note.display_title}[/bold] ({note.id})")


@app.command()
def say(
    text: str = typer.Argument(..., help="Text to speak"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="WAV file to write"),
    ignore_quiet: bool = typer.Option(False, "--ignore-quiet", help="Speak even during quiet hours"),
):
    """Speak a phrase in the assistant's voice."""
    session = get_session()
    if out is not None:
        session.audio_sink = None
    clip = session.speak(text, ignore_quiet=ignore_quiet)
    if clip is None:
        if session.is_quiet() and not ignore_quiet:
            console.print("[blue]Quiet hours are active; staying silent.[/blue]")
        else:
            console.print("[yellow]Voice output unavailable.[/yellow]")
        raise typer.Exit(0)
    if out is not None:
        console.print(f"[green]✓[/green] Wrote {clip.save(out)} ({clip.duration:.1f}s)")


# ==================== Settings ====================


@app.command()
def quiet(
    enable: Optional[bool] = typer.Option(None, "--on/--off", help="Enable or disable quiet hours"),
    start: Optional[str] = typer.Option(None, "--start", help="Start time HH:MM"),
    end: Optional[str] = typer.Option(None, "--end", help="End time HH:MM"),
):
    """Show or change quiet hours."""
    session = get_session()
    changes: dict = {}
    if enable is not None:
        changes["quiet_hours_enabled"] = enable
    if start is not None:
        changes["quiet_hours_start"] = start
    if end is not None:
        changes["quiet_hours_end"] = end
    with handle_errors():
        if changes:
            session.update_settings(**changes)

    window = session.quiet_window
    if not window.enabled:
        console.print("Quiet hours: [dim]off[/dim]")
        return
    state = "[bold blue]Active now[/bold blue]" if session.is_quiet() else "[green]inactive[/green]"
    console.print(f"Quiet hours: {window.start} to {window.end} ({state})")


@settings_app.command("show")
def settings_show():
    """Show all settings."""
    session = get_session()
    table = Table(title="ThinkBack Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in session.settings.model_dump().items():
        if name == "voice_style_presets":
            value = f"{len(value)} cached phrase(s)"
        table.add_row(name, str(value))
    table.add_row("voice_name (derived)", session.settings.voice_name)
    console.print(table)


@settings_app.command("set")
def settings_set(
    name: str = typer.Argument(..., help="Setting name, e.g. voice_volume"),
    value: str = typer.Argument(..., help="New value (JSON literals accepted)"),
):
    """Change one setting."""
    session = get_session()
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    with handle_errors():
        session.update_settings(**{name: parsed})
    console.print(f"[green]✓[/green] {name} = {getattr(session.settings, name)!r}")


@app.command()
def onboard(
    assistant_name: str = typer.Option("Maya", "--name", help="What to call your assistant"),
    voice_gender: str = typer.Option("Female", "--gender", help="Female or Male"),
    language: str = typer.Option("English — United States", "--language", help="App language"),
):
    """Complete first-run setup."""
    session = get_session(unlock=False)
    with handle_errors():
        settings = session.complete_onboarding(assistant_name, voice_gender, language)
        greeting = session.localized_phrase(
            "greeting", f"Hi, I'm {settings.assistant_name}. I'll remember for you."
        )
    console.print(f"[bold blue]{greeting}[/bold blue]")


# ==================== Backup & Data ====================


@backup_app.command("connect")
def backup_connect(email: str = typer.Argument(..., help="Account email")):
    """Connect a backup account."""
    session = get_session()
    with console.status("[yellow]Connecting...[/yellow]"), handle_errors():
        session.connect_backup(email)
    console.print(f"[green]✓[/green] Backing up to {email}")


@backup_app.command("disconnect")
def backup_disconnect():
    """Disconnect the backup account."""
    session = get_session()
    with handle_errors():
        session.disconnect_backup()
    console.print("[green]✓[/green] Backup disconnected")


@backup_app.command("now")
def backup_now():
    """Back up all notes now."""
    session = get_session()
    with handle_errors():
        count = session.backup_now()
    console.print(f"[green]✓[/green] Backed up {count} note(s)")


@backup_app.command("restore")
def backup_restore():
    """Restore notes from backup."""
    session = get_session()
    with handle_errors():
        count = session.restore_backup()
    console.print(f"[green]✓[/green] Restored {count} note(s)")


@app.command()
def export(directory: Path = typer.Option(Path("."), "--dir", "-d", help="Output directory")):
    """Export all notes as JSON."""
    session = get_session()
    try:
        path = session.export_notes(directory)
    except OSError as e:
        console.print(f"[red]Cannot export to {directory}: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Exported {len(session.notes)} note(s) to {path}")


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Erase all notes and settings."""
    session = get_session()
    if not yes and not typer.confirm("Erase all notes and settings?"):
        raise typer.Exit(0)
    with handle_errors():
        session.reset()
    console.print("[green]✓[/green] ThinkBack reset")


@app.command()
def status():
    """Show note statistics."""
    session = get_session()
    stats = session.notes.get_stats()

    table = Table(title="ThinkBack Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Total Notes", str(stats["total_notes"]))
    table.add_row("  Text", str(stats["text_notes"]))
    table.add_row("  Voice", str(stats["voice_notes"]))
    table.add_row("  Scan", str(stats["scan_notes"]))
    table.add_row("", "")
    table.add_row("Completed", str(stats["completed_notes"]))
    table.add_row("Active Reminders", str(stats["active_reminders"]))
    table.add_row("Favorites", str(stats["favorite_notes"]))
    table.add_row("Quiet Hours Active", "yes" if session.is_quiet() else "no")

    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    try:
        cfg = get_config()
    except Exception as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="ThinkBack Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    key_masked = (
        cfg.gemini_api_key[:6] + "..." if len(cfg.gemini_api_key) > 6 else "***"
    ) if cfg.gemini_api_key else "(not set, AI features off)"

    table.add_row("Gemini API Key", key_masked)
    table.add_row("Text Model", cfg.text_model)
    table.add_row("Speech Model", cfg.tts_model)
    table.add_row("Speech Sample Rate", str(cfg.speech_sample_rate))
    table.add_row("Database Path", str(cfg.database_path))
    table.add_row("Log Level", cfg.log_level)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"ThinkBack v{__version__}")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """
    ThinkBack - your personal memory assistant.

    Capture notes by typing, dictating or scanning; the assistant
    summarizes them, spots reminders and speaks outside quiet hours.
    """
    level = "DEBUG" if verbose else get_config().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


if __name__ == "__main__":
    app()
