from __future__ import annotations

import shlex
from typing import Callable, List, Mapping, Optional

from sshdb.errors import ParseError, ValidationError
from sshdb.model import Host, parse_options, parse_tags
from sshdb.quick_connect import QuickConnectSpec, attach_jump, parse_quick_connect

PromptFunc = Callable[[str], str]
PrintFunc = Callable[[str], None]


class HostEditSession:
    """
    Text-mode form for creating or editing a host record.

    The session interacts through ``input_func``/``print_func`` so it can run both interactively
    (while the Textual app is suspended) and under tests. It only builds a :class:`Host`; the
    registry validates and stores it.
    """

    def __init__(
        self,
        host: Optional[Host] = None,
        *,
        hosts: Optional[Mapping[str, Host]] = None,
        input_func: PromptFunc = input,
        print_func: PrintFunc = print,
    ):
        self.host = host
        self.hosts = dict(hosts or {})
        self.bastion_choices = [name for name in self.hosts if not host or name != host.name]
        self.input = input_func
        self.print = print_func

    @property
    def is_new(self) -> bool:
        return self.host is None

    def run(self) -> Optional[Host]:
        """
        Prompt the user for the host fields. Returns the new record or ``None`` on cancel.
        """

        try:
            return self._run()
        except (KeyboardInterrupt, EOFError):
            self.print("\nEdit cancelled.")
            return None

    def _run(self) -> Optional[Host]:
        current = self.host.copy() if self.host else Host(name="", host="")
        title = "New host" if self.is_new else f"Edit host {current.name}"
        self.print(f"\n--- {title} ---")
        self.print("Press Enter to keep current values, '-' to clear a field, Ctrl+C to abort.\n")

        if self.is_new:
            spec = self._ask_ssh_command()
            if spec is not None:
                current = attach_jump(spec.to_host(spec.host), spec.bastion, self.hosts)
                if spec.user:
                    current.name = f"{spec.user}@{spec.host}"

        name = self._ask_text("Name", current.name, required=True)
        address = self._ask_text("Host / IP", current.host, required=True)
        user = self._ask_text("User", current.user or "", allow_clear=True)
        port = self._ask_port(current.port)
        key_path = self._ask_text("Key path (or 'agent')", current.key_path or "", allow_clear=True)

        if self.bastion_choices:
            self.print(f"Known hosts for bastion: {', '.join(self.bastion_choices)}")
        bastion = self._ask_text("Bastion", current.bastion or "", allow_clear=True)

        tags = parse_tags(self._ask_text("Tags (comma separated)", ", ".join(current.tags), allow_clear=True))
        options = self._ask_options(current.options)
        remote_command = self._ask_text("Remote command", current.remote_command or "", allow_clear=True)
        description = self._ask_text("Description", current.description or "", allow_clear=True)

        return Host(
            name=name,
            host=address,
            user=user or None,
            port=port,
            key_path=key_path or None,
            bastion=bastion or None,
            tags=tags,
            options=options,
            remote_command=remote_command or None,
            description=description or None,
        )

    # ------------------------------------------------------------------ helpers
    def _ask_ssh_command(self) -> Optional[QuickConnectSpec]:
        while True:
            resp = (self.input("SSH command to prefill from (optional): ") or "").strip()
            if not resp:
                return None
            try:
                return parse_quick_connect(resp)
            except ParseError as exc:
                self.print(f"Cannot use that command: {exc.reason}")

    def _ask_text(self, label: str, current: str, *, required: bool = False, allow_clear: bool = False) -> str:
        base_prompt = f"{label}"
        if current:
            base_prompt += f" [{current}]"
        if allow_clear and current:
            base_prompt += " (type '-' to clear)"
        base_prompt += ": "

        while True:
            resp = self.input(base_prompt)
            if resp is None:
                resp = ""
            resp = resp.strip()
            if not resp:
                if current or not required:
                    return current
                self.print(f"{label} is required.")
                continue
            if allow_clear and resp == "-":
                return ""
            return resp

    def _ask_port(self, current: Optional[int]) -> Optional[int]:
        shown = current if current is not None else "22"
        prompt = f"Port [{shown}]: "
        while True:
            resp = self.input(prompt)
            if resp is None:
                resp = ""
            resp = resp.strip()
            if not resp:
                return current
            if resp == "-":
                return None
            try:
                value = int(resp)
                if 1 <= value <= 65535:
                    return value
            except ValueError:
                pass
            self.print("Port must be a number between 1 and 65535.")

    def _ask_options(self, current: List[str]) -> List[str]:
        current_text = " ".join(shlex.quote(option) for option in current)
        while True:
            text = self._ask_text("Options (raw ssh arguments)", current_text, allow_clear=True)
            try:
                return parse_options(text)
            except ValidationError as exc:
                self.print(str(exc))


__all__ = ["HostEditSession"]
