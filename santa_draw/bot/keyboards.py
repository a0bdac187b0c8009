from typing import Iterable

from aiogram.utils.keyboard import InlineKeyboardBuilder

from santa_draw.db import Participant


def confirm_draw_keyboard(game_id: int):
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Yes, run the draw!", callback_data=f"draw:{game_id}")
    return keyboard.as_markup()


def reveal_keyboard(game_id: int, participants: Iterable[Participant]):
    keyboard = InlineKeyboardBuilder()
    for participant in participants:
        keyboard.button(
            text=f"Result for {participant.name}",
            callback_data=f"reveal:{game_id}:{participant.id}",
        )
    keyboard.adjust(1)
    return keyboard.as_markup()
