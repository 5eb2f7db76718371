"""Deterministic multi-language demo codebase used when no codebase is given."""

from __future__ import annotations

import hashlib
import tempfile
from pathlib import Path

DEMO_PROJECT_NAME = 'demo'

_UTILS_H = """\
#ifndef UTILS_H
#define UTILS_H

int string_length(const char* str);
void print_message(const char* msg);

#endif
"""

_UTILS_C = """\
#include <stdio.h>
#include <string.h>
#include "../include/utils.h"

int string_length(const char* str) {
    return strlen(str);
}

void print_message(const char* msg) {
    printf("%s\\n", msg);
}
"""

_MAIN_C = """\
#include <stdio.h>
#include "../include/utils.h"

int main() {
    const char* message = "Hello, OpenGrok!";
    print_message(message);
    printf("Message length: %d\\n", string_length(message));
    return 0;
}
"""

_SERVER_PY = """\
from client import Client

class Server:
    def __init__(self, port):
        self.port = port
        self.clients = []

    def add_client(self, client):
        self.clients.append(client)

    def broadcast(self, message):
        for client in self.clients:
            client.send(message)

    def start(self):
        print(f"Server started on port {self.port}")
"""

_CLIENT_PY = """\
class Client:
    def __init__(self, name):
        self.name = name

    def send(self, message):
        print(f"{self.name} received: {message}")

    def connect(self, server):
        server.add_client(self)
"""

_HELPERS_JS = """\
export function formatMessage(msg) {
    return `[INFO] ${msg}`;
}

export function getCurrentTimestamp() {
    return new Date().toISOString();
}
"""

_APP_JS = """\
import { formatMessage, getCurrentTimestamp } from './helpers.js';

class Application {
    constructor(name) {
        this.name = name;
        this.startTime = getCurrentTimestamp();
    }

    log(message) {
        console.log(formatMessage(message));
    }

    run() {
        this.log(`Application ${this.name} started at ${this.startTime}`);
    }
}

const app = new Application('DemoApp');
app.run();
"""

_TEST_UTILS_C = """\
#include <assert.h>
#include <string.h>
#include "../include/utils.h"

void test_string_length() {
    assert(string_length("hello") == 5);
    assert(string_length("") == 0);
}

int main() {
    test_string_length();
    return 0;
}
"""

_TEST_SERVER_PY = """\
import sys
sys.path.insert(0, '../src')

from server import Server
from client import Client

def test_server():
    server = Server(8080)
    client = Client("TestClient")
    client.connect(server)
    assert len(server.clients) == 1
    print("Tests passed")

if __name__ == "__main__":
    test_server()
"""

DEMO_FILES: dict[str, str] = {
    'include/utils.h': _UTILS_H,
    'src/utils.c': _UTILS_C,
    'src/main.c': _MAIN_C,
    'src/server.py': _SERVER_PY,
    'src/client.py': _CLIENT_PY,
    'src/helpers.js': _HELPERS_JS,
    'src/app.js': _APP_JS,
    'tests/test_utils.c': _TEST_UTILS_C,
    'tests/test_server.py': _TEST_SERVER_PY,
}


def write_demo_codebase(dest: str | Path | None = None) -> Path:
    """Write the demo tree into ``dest`` (a fresh temp dir when omitted)."""
    root = Path(dest) if dest is not None else Path(tempfile.mkdtemp(prefix='ogvm-demo-'))
    for relpath, content in sorted(DEMO_FILES.items()):
        fpath = root / relpath
        fpath.parent.mkdir(parents=True, exist_ok=True)
        fpath.write_bytes(content.encode('utf-8'))
    return root


def demo_digest(root: str | Path) -> str:
    """Stable sha256 over the relative paths and bytes of every file in ``root``."""
    root = Path(root)
    hasher = hashlib.sha256()
    for fpath in sorted(p for p in root.rglob('*') if p.is_file()):
        hasher.update(fpath.relative_to(root).as_posix().encode('utf-8'))
        hasher.update(b'\0')
        hasher.update(fpath.read_bytes())
        hasher.update(b'\0')
    return hasher.hexdigest()
