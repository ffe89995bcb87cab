from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from core.errors import AuthError, BackendError
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Dismissed once somebody signed in, or chose to work offline.
    app.state.auth.current is None in the offline case.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Username or Email")
                    yield Input(placeholder="kasir1", id="input-login-id")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Work Offline", id="btn-offline")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Username")
                    yield Input(placeholder="kasir1", id="input-reg-username")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    yield Button("Register", id="btn-reg", variant="primary")

            with TabPane("Forgot password", id="tab-reset"):
                with Vertical(id="div-reset"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reset-email")
                    yield Button("Send reset link", id="btn-reset", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-id").focus()

    def on_key(self, event: Key) -> None:
        if event.key != "enter":
            return
        if self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        elif self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        identifier = self.query_one("#input-login-id", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not identifier or not pwd:
            self.notify("Username or password cannot be empty!", severity="error")
            return

        try:
            user = await self.app.state.auth.sign_in_any(identifier, pwd)
        except (AuthError, BackendError) as e:
            self.notify(str(e), severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        await self.app.state.start_session(self.app.notify)
        self.notify(f"Hello {user.username}!")
        self.dismiss()

    @on(Button.Pressed, "#btn-offline")
    @work(exclusive=True)
    async def handle_offline(self) -> None:
        await self.app.state.start_session(self.app.notify)
        self.notify("Working offline, sales are not saved to the database.")
        self.dismiss()

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        email = self.query_one("#input-reg-email", Input).value.strip()
        username = self.query_one("#input-reg-username", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value

        if not email or not username or not pwd:
            self.notify("Make sure all inputs are filled.", severity="error")
            return

        try:
            await self.app.state.auth.sign_up(email, username, pwd)
        except (AuthError, BackendError) as e:
            self.notify(str(e), severity="error")
            return

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-id", Input).value = username
        self.query_one("#input-login-pwd", Input).focus()
        self.notify("Registration successful. You can log in now.")

    @on(Button.Pressed, "#btn-reset")
    @work(exclusive=True)
    async def handle_reset(self) -> None:
        email = self.query_one("#input-reset-email", Input).value.strip()
        if "@" not in email:
            self.notify("Enter the email of your account.", severity="error")
            return
        try:
            await self.app.state.auth.reset_password(email)
        except BackendError:
            self.notify("Could not send reset link.", severity="error")
            return
        self.notify("If the account exists, a reset link has been sent.")
        self.get_child_by_type(TabbedContent).active = "tab-login"

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
