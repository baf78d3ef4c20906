import pytest
from unittest.mock import MagicMock
from chatengine.audio.manager import SoundCue
from chatengine.core.events import ChatEvent
from chatstory.chat.models import Contact, MessageKind
from chatstory.chat.router import ConversationRouter

def test_post_to_active_contact_is_shown(router, presenter):
    mira = router.get_contact("Mira")

    message = router.post_message("hello", is_self=False, contact=mira)

    assert mira.message_history == [message]
    assert message.sender_name == "Mira"
    presenter.show_message.assert_called_once_with(mira, message)
    assert not mira.unread

def test_post_to_background_contact_marks_unread(router, presenter):
    jonas = router.get_contact("Jonas")

    router.post_message("psst", is_self=False, contact=jonas)

    assert jonas.unread
    presenter.show_message.assert_not_called()
    presenter.notify.assert_called_once_with(jonas)

def test_self_message_to_background_contact_does_not_notify(router, presenter):
    jonas = router.get_contact("Jonas")

    router.post_message("me", is_self=True, contact=jonas)

    assert len(jonas.message_history) == 1
    assert not jonas.unread
    presenter.notify.assert_not_called()

def test_switching_clears_unread_and_renders_history(router, presenter):
    jonas = router.get_contact("Jonas")
    router.post_message("one", is_self=False, contact=jonas)
    router.post_message("two", is_self=False, contact=jonas)

    assert router.switch_active(jonas)

    assert router.active_contact is jonas
    assert not jonas.unread
    rendered_contact, history = presenter.render.call_args.args
    assert rendered_contact is jonas
    assert [m.content for m in history] == ["one", "two"]

def test_post_defaults_to_active_contact(router):
    message = router.post_message("hey", is_self=True)
    assert router.get_contact("Mira").message_history == [message]

def test_empty_text_is_ignored(router):
    assert router.post_message("", is_self=False) is None
    assert router.get_contact("Mira").message_history == []

def test_unknown_contact_lookup(router):
    assert router.get_contact("Nobody") is None
    assert router.get_contact("") is None
    assert not router.switch_active("Nobody")

def test_duplicate_contact_rejected(router):
    with pytest.raises(ValueError):
        router.add_contact("Mira")

def test_contact_with_entry_node_starts_unread(event_bus):
    router = ConversationRouter(event_bus)
    contact = router.add_contact("Ada", entry_node=42)
    assert contact.unread
    assert contact.pending_entry_node_id == 42

def test_options_callback_fires_at_most_once(router, presenter):
    chosen = []
    router.present_options(["A", "B"], chosen.append, router.get_contact("Mira"))

    presenter.render_options.assert_called_once_with(["A", "B"])
    assert router.options_locked

    assert router.select_option(1)
    assert not router.select_option(0)
    assert not router.select_option(1)

    assert chosen == [1]
    assert not router.options_locked
    presenter.clear_options.assert_called_once()

def test_out_of_range_selection_keeps_gate(router):
    chosen = []
    router.present_options(["A"], chosen.append)

    assert not router.select_option(3)
    assert router.options_locked

    assert router.select_option(0)
    assert chosen == [0]

def test_gate_unlocks_before_callback_runs(router):
    seen = []
    router.present_options(["A"], lambda i: seen.append(router.options_locked))
    router.select_option(0)
    assert seen == [False]

def test_switch_is_blocked_while_options_pending(router):
    mira = router.get_contact("Mira")
    router.present_options(["A"], lambda i: None, mira)

    assert not router.switch_active("Jonas")
    assert router.active_contact is mira

def test_clear_all_pending_options(router, presenter):
    chosen = []
    router.present_options(["A"], chosen.append)

    router.clear_all_pending_options()

    assert not router.options_locked
    assert not router.select_option(0)
    assert chosen == []
    assert router.switch_active("Jonas")

def test_options_for_background_contact_wait_for_its_view(router, presenter):
    jonas = router.get_contact("Jonas")
    router.present_options(["Go"], lambda i: None, jonas)

    presenter.render_options.assert_not_called()
    assert jonas.unread

    assert router.switch_active(jonas)
    presenter.render_options.assert_called_once_with(["Go"])

def test_separator_entry(router):
    mira = router.get_contact("Mira")
    router.post_message("x", is_self=False, contact=mira)

    router.insert_separator(mira)

    assert mira.message_history[-1].kind is MessageKind.SEPARATOR
    assert mira.ends_with_separator

def test_queue_dialog_starts_on_switch(router, event_bus, recorder):
    assert router.queue_dialog("Jonas", 2001)

    jonas = router.get_contact("Jonas")
    assert jonas.pending_entry_node_id == 2001
    assert jonas.unread
    assert recorder == []

    router.switch_active(jonas)

    starts = [e for e in recorder if e.type is ChatEvent.DIALOG_START]
    assert [e["node_id"] for e in starts] == [2001]
    assert jonas.pending_entry_node_id == 0

    # Reopening does not replay it
    router.switch_active("Mira")
    router.switch_active("Jonas")
    assert len([e for e in recorder if e.type is ChatEvent.DIALOG_START]) == 1

def test_trigger_dialog_for_active_contact_publishes(router, recorder):
    assert router.trigger_dialog("Mira", 5)
    assert recorder[0].type is ChatEvent.DIALOG_START
    assert recorder[0]["node_id"] == 5

def test_trigger_dialog_for_background_contact_queues(router, recorder):
    assert router.trigger_dialog("Jonas", 5)
    assert recorder == []
    assert router.get_contact("Jonas").pending_entry_node_id == 5

def test_queue_for_unknown_contact_fails(router):
    assert not router.queue_dialog("Nobody", 5)

def test_audio_cues(event_bus, presenter):
    audio = MagicMock()
    router = ConversationRouter(event_bus, presenter, audio, message_volume=0.5)
    mira = router.add_contact("Mira")
    jonas = router.add_contact("Jonas")
    router.switch_active(mira)

    router.post_message("hi", is_self=False, contact=mira)
    audio.play_cue.assert_called_with(SoundCue.MESSAGE, 0.5)

    router.post_message("hi", is_self=False, contact=jonas)
    audio.play_cue.assert_called_with(SoundCue.NOTIFICATION, 1.0)

    router.present_options(["A"], lambda i: None)
    router.select_option(0)
    audio.play_cue.assert_called_with(SoundCue.OPTION, 1.0)

def test_option_sound_falls_back_to_button(event_bus, presenter):
    audio = MagicMock()
    audio.has_cue.return_value = False
    router = ConversationRouter(event_bus, presenter, audio)
    router.add_contact("Mira")
    router.switch_active("Mira")

    router.present_options(["A"], lambda i: None)
    router.select_option(0)

    audio.has_cue.assert_called_with(SoundCue.OPTION)
    audio.play_cue.assert_called_with(SoundCue.BUTTON, 1.0)

def test_opening_bound_contact_keeps_its_queued_dialog(router, recorder):
    jonas = router.get_contact("Jonas")
    router.queue_dialog("Jonas", 50)
    router.present_options(["Go"], lambda i: None, jonas)

    assert router.switch_active(jonas)

    assert router.options_locked
    assert jonas.pending_entry_node_id == 50
    assert [e for e in recorder if e.type is ChatEvent.DIALOG_START] == []
