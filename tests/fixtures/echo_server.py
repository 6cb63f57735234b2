"""Line-delimited JSON-RPC tool server used by the tests.

Launch:
    python tests/fixtures/echo_server.py [--tools echo,ls] [--exit-on-start]

Test:
    echo '{"jsonrpc":"2.0","method":"tools/list","params":{},"id":1}' | python tests/fixtures/echo_server.py
"""

import argparse
import json
import sys
import time

TOOLS = {
    "echo": {
        "name": "echo",
        "description": "Echoes back the input message.",
        "inputSchema": {
            "type": "object",
            "properties": {"message": {"type": "string"}},
            "required": ["message"],
        },
    },
    "add": {
        "name": "add",
        "description": "Adds two numbers.",
        "inputSchema": {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    },
    "ls": {
        "name": "ls",
        "description": "Lists files in a directory.",
        "inputSchema": {
            "type": "object",
            "properties": {"path": {"type": "string"}},
            "required": ["path"],
        },
    },
    "search": {
        "name": "search",
        "description": "Searches for a query.",
        "inputSchema": {
            "type": "object",
            "properties": {"query": {"type": "string"}},
        },
    },
    "fail": {
        "name": "fail",
        "description": "Always reports an error.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    "crash": {
        "name": "crash",
        "description": "Exits the server without answering.",
        "inputSchema": {"type": "object", "properties": {}},
    },
}


def text(value):
    return {"content": [{"type": "text", "text": value}], "isError": False}


def call(server_name, tool, arguments):
    if tool == "echo":
        return text(str(arguments.get("message", "")))
    if tool == "add":
        return text(str(arguments.get("a", 0) + arguments.get("b", 0)))
    if tool == "ls":
        return text("a.txt\nb.txt")
    if tool == "search":
        return text(f"{server_name}: {arguments.get('query', '')}")
    if tool == "fail":
        return {"content": [{"type": "text", "text": "tool exploded"}], "isError": True}
    if tool == "crash":
        sys.exit(7)
    raise ValueError(f"Unknown tool: '{tool}'")


def write(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--name", default="echo")
    parser.add_argument("--tools", default="echo,add,ls,fail,crash")
    parser.add_argument("--exit-on-start", action="store_true")
    parser.add_argument("--silent", action="store_true")
    parser.add_argument("--reject-initialize", action="store_true")
    parser.add_argument("--noisy", action="store_true")
    args = parser.parse_args()

    enabled = [name for name in args.tools.split(",") if name in TOOLS]

    if args.exit_on_start:
        sys.stderr.write("fatal: missing credentials\n")
        sys.stderr.flush()
        sys.exit(3)

    if not args.silent:
        sys.stderr.write(f"{args.name} server ready\n")
        sys.stderr.flush()
    else:
        time.sleep(0.05)

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue

        request = json.loads(line)
        request_id = request.get("id")
        method = request.get("method", "")
        params = request.get("params") or {}

        if request_id is None:
            # Notifications get no response
            continue

        if args.noisy:
            sys.stdout.write("this line is not json\n")
            write({"jsonrpc": "2.0", "method": "notifications/message", "params": {}})

        try:
            if method == "initialize":
                if args.reject_initialize:
                    raise ValueError("initialize not supported")
                result = {
                    "protocolVersion": params.get("protocolVersion"),
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": args.name, "version": "1.0"},
                }
            elif method == "tools/list":
                result = {"tools": [TOOLS[name] for name in enabled]}
            elif method == "tools/call":
                tool = params.get("name", "")
                if tool not in enabled:
                    raise ValueError(f"Unknown tool: '{tool}'")
                result = call(args.name, tool, params.get("arguments") or {})
            elif method == "shutdown":
                write({"jsonrpc": "2.0", "id": request_id, "result": {}})
                return
            else:
                write(
                    {
                        "jsonrpc": "2.0",
                        "id": request_id,
                        "error": {"code": -32601, "message": f"Unknown method: '{method}'"},
                    }
                )
                continue
        except ValueError as e:
            write(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32603, "message": str(e)},
                }
            )
            continue

        write({"jsonrpc": "2.0", "id": request_id, "result": result})


if __name__ == "__main__":
    main()
