"""
Prompt construction for the advisory text generator
"""

import re
from typing import Dict, List, Optional

STYLE_GUIDE = """
You are writing an AI log review for a Gen 3 HEMI customer.
Voice: short, direct, shop tone. Avoid fluff. Plain English.
Structure:
- "Summary" (2-4 sentences)

Rules:
- Do NOT include Findings or Next Steps.
- Prefer concise overview of engine health.
- If data is weak/inconclusive, say so briefly.
- Do not repeat checklist items (knock, trims, MAP, etc.); those are already shown separately.
- Units: mph, °F, AFR, psi/kPa.
- Always align recommendations with provided metadata (fuel, power adder, injectors, transmission, camshaft, neural network).
- Do NOT suggest injector upgrades if injectors are already aftermarket.
- Do NOT mention boost/forced induction if Power Adder = N/A.
- If fuel type is E85, do NOT recommend switching to 93 octane.
- Respect transmission choice (manual vs auto) when discussing torque management or shifts.
- If misfires are detected, always state that spark plugs, coil packs, and injectors should be inspected.
- If Camshaft = Aftermarket, do NOT suggest stock cam or phaser-related fixes unless specifically logged.
- If Neural Network = Disabled, do NOT recommend disabling it again or making NN-based corrections.
Keep the summary short, 250-300 words max.
""".strip()

FEW_SHOTS = [
    {
        'input': {
            'meta': {'year': '2016', 'model': 'Charger', 'engine': '6.4L (392)', 'fuel': '93',
                     'power': 'N/A', 'trans': '8-speed auto', 'cam': 'Stock', 'nn': 'Enabled'},
            'observations': (
                "- Light KR 0.8-1.5° around 3,800-4,800 rpm at 0.60-0.72 g/cyl.\n"
                "- STFT/LTFT within ±4% cruise; WOT AFR on target.\n"
                "- IAT peaks 135-140°F after back-to-back pulls; recovery is slow."
            ),
        },
        'output': (
            "Summary\n"
            "Mild KR shows up midrange under moderate load. Fueling is in a good place. "
            "Heat creeps up after repeated pulls which can add knock."
        ),
    },
    {
        'input': {
            'meta': {'year': '2017', 'model': 'Challenger', 'engine': '5.7L', 'fuel': '93',
                     'power': 'N/A', 'trans': '6-speed manual', 'cam': 'Aftermarket', 'nn': 'Disabled'},
            'observations': (
                "- Misfires logged in cyl 7 and cyl 8 under load.\n"
                "- No KR detected.\n"
                "- Fuel trims within ±3%."
            ),
        },
        'output': (
            "Summary\n"
            "Misfires showed up on cylinder 7 and 8 under load. No knock is present and fueling looks stable. "
            "Plugs, coil packs, and injectors should all be inspected."
        ),
    },
]

# Prescriptive or blaming phrasing -> neutral observation
_TONE_REPLACEMENTS = [
    (re.compile(r'the tune is (too|overly) aggressive', re.IGNORECASE),
     'the current timing/load behavior shows signs that may merit further review'),
    (re.compile(r'retard (timing|spark) by [\d.\-]+°', re.IGNORECASE),
     'consider further investigation based on your process'),
    (re.compile(r'you should', re.IGNORECASE), 'it may be worth'),
    (re.compile(r'\bfix\b', re.IGNORECASE), 'address'),
    (re.compile(r'\bincorrect\b', re.IGNORECASE), 'inconsistent'),
]

_BOOST_WORDS = re.compile(r'\b(boost|psi|boosted)\b', re.IGNORECASE)


def format_user(meta: Optional[Dict[str, str]] = None, observations: str = '') -> str:
    meta = meta or {}
    pretty = ', '.join(f"{k}: {v}" for k, v in meta.items() if v not in (None, ''))
    return '\n'.join([
        f"Vehicle: {pretty}" if pretty else "Vehicle: (unspecified)",
        "Observations from log (facts only):",
        observations.strip(),
    ])


def build_messages(observations: str, meta: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    """System style guide, few-shot pairs, then the request itself"""
    messages = [{'role': 'system', 'content': STYLE_GUIDE}]
    for example in FEW_SHOTS:
        messages.append({'role': 'user', 'content': format_user(**example['input'])})
        messages.append({'role': 'assistant', 'content': example['output']})
    messages.append({'role': 'user', 'content': format_user(meta, observations)})
    return messages


def sanitize_tone(text: str) -> str:
    for pattern, replacement in _TONE_REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text


def is_naturally_aspirated(meta: Optional[Dict[str, str]]) -> bool:
    return bool(meta) and str(meta.get('power', '')).strip().upper() == 'N/A'


def strip_boost_language(text: str) -> str:
    """Drop lines mentioning boost; used when no power adder is fitted"""
    return '\n'.join(line for line in text.split('\n') if not _BOOST_WORDS.search(line))
