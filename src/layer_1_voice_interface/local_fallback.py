import re
import threading
from typing import Optional

import pyttsx3

from src.utils.config import config


class LocalSpeechFallback:
    """
    On-device text-to-speech used when the remote speech model gives no
    usable audio. Fire-and-forget: speak() returns immediately.
    """

    def __init__(self, default_locale: Optional[str] = None, rate: int = 170):
        self.default_locale = default_locale or config['fallback_locale']
        self.rate = rate

    def speak(self, text: str, language_tag: Optional[str] = None) -> None:
        if not text:
            return
        locale = language_tag or self.default_locale
        print(f"🗣️ Local speech fallback ({locale})")
        threading.Thread(target=self._run, args=(text, locale), daemon=True).start()

    def _run(self, text: str, locale: str) -> None:
        try:
            engine = pyttsx3.init()
            voice_id = self._find_voice(engine, locale)
            if voice_id:
                engine.setProperty('voice', voice_id)
            engine.setProperty('rate', self.rate)
            engine.say(text)
            engine.runAndWait()
        except Exception as e:
            print(f"⚠️ Error in local speech fallback: {e}")

    @staticmethod
    def _find_voice(engine, locale: str) -> Optional[str]:
        """Pick the first installed voice whose language or id matches locale."""
        wanted = {locale.lower(), locale.split('-')[0].lower()}
        for voice in engine.getProperty('voices') or []:
            languages = []
            for lang in getattr(voice, 'languages', None) or []:
                if isinstance(lang, bytes):
                    lang = lang.decode('utf-8', errors='ignore')
                languages.append(str(lang).strip('\x00\x05').lower().replace('_', '-'))
            id_parts = set(re.split(r'[^a-z]+', str(getattr(voice, 'id', '')).lower()))
            if wanted & set(languages) or wanted & id_parts:
                return voice.id
        return None
