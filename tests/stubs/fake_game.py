"""Stand-in for the game executable used by the process controller tests.

Usage: fake_game.py MODE

Modes:
    ok      prompt, then answer every connect command by port
    silent  never print a prompt
    exit    prompt, then exit as soon as a command arrives

Answers by port: 27001 is full, 27002 bans the player, 27003 never answers,
anything else connects.
"""

import re
import sys
import time

ANSWERS = {
    27001: "Server is full.",
    27002: "You are banned from this server.",
    27003: None,
}

CONNECT_REGEX = re.compile(r"connect\s+'?\[?([^\]\s']+?)\]?:(\d+)'?")


def say(line: str) -> None:
    print(line, flush=True)


def main() -> int:
    mode = sys.argv[1] if len(sys.argv) > 1 else "ok"
    say("Fake game 1.0 starting")
    say("Loading fastfiles...")

    if mode == "silent":
        time.sleep(600)
        return 0

    say("Console ready")

    for line in sys.stdin:
        if mode == "exit":
            return 3

        match = CONNECT_REGEX.search(line)
        if match is None:
            say(f"Unknown command: {line.strip()}")
            continue

        host, port = match.group(1), int(match.group(2))
        say(f"Connecting to {host}:{port}...")
        answer = ANSWERS.get(port, f"Connected to server {host}:{port}")
        if answer is not None:
            say(answer)

    return 0


if __name__ == "__main__":
    sys.exit(main())
