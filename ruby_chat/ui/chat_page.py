"""NiceGUI chat interface with SSE streaming support."""

import logging
from functools import partial

import httpx
from nicegui import app, events, ui

from ruby_chat.models.schemas import MediaType
from ruby_chat.ui.api_client import ApiError, close_api_client, get_api_client, stream_chat_response
from ruby_chat.ui.session import ChatSession, DisplayMessage, GenerationWatch, SessionBusy

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5.0

# Reads a pasted image as a data URL and emits it; other pastes pass through
PASTE_IMAGE_JS = """(e) => {
    const items = [...(e.clipboardData?.items || [])];
    const item = items.find((i) => i.type.startsWith('image/'));
    if (!item) return;
    e.preventDefault();
    const reader = new FileReader();
    reader.onload = () => emit(reader.result);
    reader.readAsDataURL(item.getAsFile());
}"""

CUSTOM_CSS = """
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap"
      rel="stylesheet">
<style>
    * { font-family: 'Inter', sans-serif; }

    body { background: #f7f3f3; min-height: 100vh; }

    .app-container {
        background: white;
        border-radius: 12px;
        box-shadow: 0 2px 8px rgba(0, 0, 0, 0.1);
        overflow: hidden;
    }

    .header { background: linear-gradient(135deg, #b3123a 0%, #7a0c2e 100%); }

    .message-user {
        background: #b3123a;
        color: white;
        border-radius: 18px 18px 4px 18px;
        white-space: pre-wrap;
    }

    .message-assistant {
        background: #f3f4f6;
        color: #1f2937;
        border-radius: 18px 18px 18px 4px;
    }
    .message-assistant pre { background: #1f2937; color: #f3f4f6; padding: 0.75rem; border-radius: 8px; overflow-x: auto; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #b3123a;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }

    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }

    .input-box {
        background: #f9fafb;
        border: 1px solid #e5e7eb;
        border-radius: 12px;
    }
    .input-box:focus-within { border-color: #b3123a; }

    .attachment-chip { background: #fdecef; border-radius: 8px; }
</style>
"""


@ui.page("/")
async def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    api = get_api_client()

    try:
        models = await api.list_models()
    except (ApiError, httpx.HTTPError) as e:
        logger.warning(f"Could not load model list: {e}")
        models = []
    session = ChatSession(models)

    messages_container: ui.column
    attachments_row: ui.row
    input_field: ui.textarea
    send_btn: ui.button
    response_view: ui.markdown | None = None
    typing_row: ui.row | None = None

    def render_typing() -> ui.row:
        with ui.row().classes("gap-1 py-1") as row:
            for _ in range(3):
                ui.element("div").classes("typing-dot")
        return row

    def render_message(msg: DisplayMessage, is_last: bool) -> None:
        nonlocal response_view, typing_row
        is_user = msg.role == "user"
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"

        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if msg.image:
                        ui.image(msg.image).classes("w-48 rounded mb-2")
                    if is_user:
                        ui.label(msg.content).classes("text-sm")
                    elif is_last and session.is_busy:
                        if not msg.content:
                            typing_row = render_typing()
                        response_view = ui.markdown(msg.content).classes("text-sm")
                    else:
                        ui.markdown(msg.content).classes("text-sm")
                ui.label(msg.time).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )

    def refresh_messages() -> None:
        nonlocal response_view, typing_row
        response_view = None
        typing_row = None
        messages_container.clear()
        with messages_container:
            if not session.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("diamond").classes("text-5xl text-rose-200")
                    ui.label("How can Ruby help today?").classes("text-lg text-gray-400")
            else:
                last = len(session.messages) - 1
                for i, msg in enumerate(session.messages):
                    render_message(msg, i == last)

    def refresh_attachments() -> None:
        attachments_row.clear()
        with attachments_row:
            if session.document:
                with ui.row().classes("attachment-chip items-center gap-2 px-3 py-1"):
                    ui.icon("description").classes("text-rose-700")
                    ui.label(
                        f"{session.document.file_name} "
                        f"({session.document.character_count:,} chars)"
                    ).classes("text-xs")
                    ui.button(icon="close", on_click=remove_document).props("flat round dense size=sm")
            if session.pasted_image:
                with ui.row().classes("attachment-chip items-center gap-2 px-3 py-1"):
                    ui.image(session.pasted_image.data).classes("w-10 h-10 rounded")
                    ui.label(session.pasted_image.name).classes("text-xs")
                    ui.button(icon="close", on_click=remove_image).props("flat round dense size=sm")

    def remove_document() -> None:
        session.remove_document()
        refresh_attachments()

    def remove_image() -> None:
        session.remove_image()
        refresh_attachments()

    def on_paste(e: events.GenericEventArguments) -> None:
        if isinstance(e.args, str) and e.args.startswith("data:image/"):
            session.attach_image(e.args)
            refresh_attachments()

    async def on_upload(e: events.UploadEventArguments) -> None:
        try:
            document = await api.upload_document(e.name, e.content.read())
        except (ApiError, httpx.HTTPError) as err:
            ui.notify(str(err) or "Failed to upload document", type="negative")
            return
        finally:
            uploader.reset()
        session.attach_document(document)
        refresh_attachments()

    async def send_message() -> None:
        text = input_field.value or ""
        if not session.can_send(text):
            return
        try:
            outgoing = session.compose_outgoing(text)
        except SessionBusy:
            return

        input_field.value = ""
        send_btn.disable()
        refresh_attachments()
        session.begin_stream()
        refresh_messages()

        def on_chunk(content: str) -> None:
            nonlocal typing_row
            accumulated = session.apply_fragment(content)
            if typing_row is not None:
                typing_row.delete()
                typing_row = None
            if response_view is not None:
                response_view.set_content(accumulated)

        def end_exchange() -> None:
            session.finish()
            send_btn.enable()
            refresh_messages()

        def on_error(error: str) -> None:
            logger.warning(f"Chat stream failed: {error}")
            session.fail()
            end_exchange()

        await stream_chat_response(
            outgoing,
            session.model_id,
            session.provider,
            on_chunk=on_chunk,
            on_error=on_error,
            on_complete=end_exchange,
        )

    def new_chat() -> None:
        session.clear()
        refresh_messages()
        refresh_attachments()

    def select_model(model_id: str) -> None:
        session.select_model(model_id)
        model_btn.set_text(session.model_name)

    # === Media generation dialog ===
    watch = GenerationWatch()
    poll_timer: ui.timer | None = None

    async def poll_generation() -> None:
        if not watch.active:
            stop_polling()
            return
        media_type = watch.media_type
        try:
            result = await api.poll_generation(watch.task_id, media_type)
        except (ApiError, httpx.HTTPError) as err:
            stop_polling()
            gen_status.set_text(f"Status check failed: {err}")
            return
        if not watch.active:
            return

        gen_status.set_text(f"Status: {result.status or 'unknown'}")
        if result.url:
            gen_result.clear()
            with gen_result:
                if media_type is MediaType.IMAGE:
                    ui.image(result.url).classes("w-full rounded")
                else:
                    ui.video(result.url).classes("w-full rounded")
                ui.link("Open in new tab", result.url, new_tab=True).classes("text-xs")
        if not watch.observe(result):
            stop_polling()

    def stop_polling() -> None:
        nonlocal poll_timer
        watch.stop()
        if poll_timer is not None:
            poll_timer.deactivate()
            poll_timer = None
        generate_btn.enable()

    async def start_generation() -> None:
        nonlocal poll_timer
        prompt = (gen_prompt.value or "").strip()
        if not prompt:
            ui.notify("Prompt is required", type="warning")
            return

        media_type = MediaType(gen_type.value)
        generate_btn.disable()
        gen_result.clear()
        try:
            task = await api.submit_generation(prompt, media_type, aspect_ratio=gen_ratio.value)
        except (ApiError, httpx.HTTPError) as err:
            generate_btn.enable()
            ui.notify(str(err) or "Failed to generate", type="negative")
            return

        gen_status.set_text(f"Status: {task.status}")
        watch.start(task.task_id, media_type)
        poll_timer = ui.timer(POLL_INTERVAL, poll_generation)

    # Closing the dialog abandons the task being polled
    with ui.dialog().on("hide", stop_polling) as gen_dialog, ui.card().classes("w-[28rem]"):
        ui.label("Generate media").classes("text-lg font-semibold")
        gen_prompt = ui.textarea(placeholder="Describe what to create...").classes("w-full")
        gen_type = ui.toggle({"image": "Image", "video": "Video"}, value="image")
        gen_ratio = ui.select(
            ["1:1", "16:9", "9:16", "4:3", "3:4"], value="1:1", label="Aspect ratio"
        ).classes("w-full")
        gen_ratio.bind_visibility_from(gen_type, "value", value="image")
        gen_status = ui.label("").classes("text-sm text-gray-500")
        gen_result = ui.column().classes("w-full")
        with ui.row().classes("w-full justify-end"):
            ui.button("Close", on_click=gen_dialog.close).props("flat")
            generate_btn = ui.button("Generate", on_click=start_generation).props("unelevated color=red-9")

    # === UI Layout ===
    with (
        ui.element("div").classes("w-full min-h-screen p-4 md:p-8"),
        ui.column().classes("w-full max-w-3xl mx-auto app-container").style(
            "height: calc(100vh - 4rem)"
        ),
    ):
        # Header
        with ui.row().classes("w-full header px-5 py-4 items-center justify-between"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("diamond").classes("text-white text-3xl")
                ui.label("Ruby").classes("text-lg font-semibold text-white")
            with ui.row().classes("items-center gap-2"):
                with ui.button(session.model_name, icon="expand_more").props(
                    "flat no-caps color=white"
                ) as model_btn:
                    with ui.menu():
                        for header, group in session.model_groups():
                            ui.item_label(header).props("header").classes(
                                "text-xs font-semibold text-gray-500"
                            )
                            for model in group:
                                ui.menu_item(model.name, on_click=partial(select_model, model.id))
                ui.button(icon="auto_awesome", on_click=gen_dialog.open).props(
                    "flat round color=white"
                ).tooltip("Generate image or video")
                ui.button(icon="add", on_click=new_chat).props("flat round color=white").tooltip(
                    "New chat"
                )

        # Messages
        with (
            ui.scroll_area().classes("flex-grow w-full bg-gray-50"),
            ui.column().classes("w-full p-5"),
        ):
            messages_container = ui.column().classes("w-full gap-4")
            refresh_messages()

        # Attachments
        attachments_row = ui.row().classes("w-full px-4 gap-2")

        # Input
        with ui.row().classes("w-full p-4 gap-3 items-end bg-white border-t"):
            uploader = (
                ui.upload(on_upload=on_upload, auto_upload=True, max_files=1)
                .props('accept=".pdf,.docx,.txt,.md" flat')
                .classes("hidden")
            )
            ui.button(icon="attach_file", on_click=lambda: uploader.run_method("pickFiles")).props(
                "flat round"
            ).tooltip("Attach document")
            with ui.element("div").classes("flex-grow input-box px-3 py-2"):
                input_field = (
                    ui.textarea(
                        placeholder="Message Ruby...",
                        on_change=lambda e: session.update_draft(e.value or ""),
                    )
                    .props("autogrow borderless dense rows=1")
                    .classes("w-full")
                    .on("keydown.enter.exact.prevent", send_message)
                    .on("paste", on_paste, js_handler=PASTE_IMAGE_JS)
                )
            send_btn = ui.button(icon="send", on_click=send_message).props(
                "round unelevated color=red-9"
            )


app.on_shutdown(close_api_client)


def main() -> None:
    ui.run(title="Ruby", port=8080, reload=False)


if __name__ == "__main__":
    main()
