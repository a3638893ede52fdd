#!/usr/bin/env python3
"""
Pushscribe - Push-to-Talk Voice Dictation

Hold the trigger key, speak, release: the text lands at your cursor.

Usage:
    python ptt_pushscribe.py

Environment Variables:
    GEMINI_API_KEY              API key for rewrite and correction
    PUSHSCRIBE_TRIGGER_KEY      Trigger key: 'fn', 'right_option', 'right_command' or 'control'
    PUSHSCRIBE_LOCALE           Recognition locale (e.g., 'ja-JP', 'en-US')
    PUSHSCRIBE_REWRITE          Enable rewrite of plain dictation: '1' or 'true'
    PUSHSCRIBE_USER_CONTEXT     Extra context appended to the rewrite/correction prompt
    PUSHSCRIBE_OUTPUT_MODE      Output mode: 'paste', 'type' or 'clipboard'
    PUSHSCRIBE_AUDIO_DEVICE     Audio input device index
    PUSHSCRIBE_VERBOSE          Enable verbose logging: '1' or 'true'
"""

from pushscribe.__main__ import main

if __name__ == "__main__":
    raise SystemExit(main())
