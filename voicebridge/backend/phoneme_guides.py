import copy
from typing import Any, Dict, List, Optional


PHONEME_GUIDES: List[Dict[str, Any]] = [
    {
        "id": "th",
        "phoneme": "/θ/",
        "name": "TH (voiceless)",
        "category": "Fricatives",
        "difficulty": "hard",
        "description": "The soft 'th' in 'think', made by pushing air between the tongue and upper teeth.",
        "tonguePosition": "Tongue tip rests lightly between the upper and lower front teeth.",
        "lipPosition": "Lips relaxed and slightly apart.",
        "airflow": "Steady stream of air over the tongue with no voicing.",
        "examples": ["think", "thumb", "bath", "three", "nothing"],
        "tips": [
            "Look in a mirror and make sure you can see the tip of your tongue.",
            "Blow gently as if cooling soup, keeping the tongue in place.",
        ],
        "commonMistakes": ["Replacing it with 'f' (fink)", "Replacing it with 't' (tink)"],
    },
    {
        "id": "r",
        "phoneme": "/r/",
        "name": "R",
        "category": "Liquids",
        "difficulty": "hard",
        "description": "The 'r' in 'red', a voiced sound shaped by the tongue without touching the roof of the mouth.",
        "tonguePosition": "Tongue tip curls slightly back or bunches up, sides touching the upper back teeth.",
        "lipPosition": "Lips slightly rounded.",
        "airflow": "Voiced air flows over the middle of the tongue.",
        "examples": ["red", "rabbit", "carrot", "tree", "car"],
        "tips": [
            "Start from a long 'ee' and pull the tongue back until you hear 'r'.",
            "Keep the tongue tip off the roof of the mouth.",
        ],
        "commonMistakes": ["Sounding like 'w' (wed)", "Dropping the sound at the end of words"],
    },
    {
        "id": "s",
        "phoneme": "/s/",
        "name": "S",
        "category": "Fricatives",
        "difficulty": "medium",
        "description": "The hissing 's' in 'sun', made with a narrow groove of air behind the front teeth.",
        "tonguePosition": "Tongue tip just behind the upper front teeth without touching them.",
        "lipPosition": "Lips spread slightly in a small smile.",
        "airflow": "A thin, focused stream of air over the tongue tip; no voicing.",
        "examples": ["sun", "sock", "bus", "glass", "listen"],
        "tips": ["Make a long snake sound 'ssss'.", "Keep your teeth close together."],
        "commonMistakes": ["Tongue pushing forward into a lisp ('th')", "Air escaping over the sides of the tongue"],
    },
    {
        "id": "l",
        "phoneme": "/l/",
        "name": "L",
        "category": "Liquids",
        "difficulty": "medium",
        "description": "The 'l' in 'lamp', made with the tongue tip touching the ridge behind the teeth.",
        "tonguePosition": "Tongue tip presses on the ridge behind the upper front teeth.",
        "lipPosition": "Lips relaxed and open.",
        "airflow": "Voiced air flows around the sides of the tongue.",
        "examples": ["lamp", "yellow", "ball", "light", "hello"],
        "tips": ["Sing 'la la la' while watching your tongue lift.", "Hold the tongue up and hum."],
        "commonMistakes": ["Sounding like 'w' (yewow)", "Sounding like 'y'"],
    },
    {
        "id": "sh",
        "phoneme": "/ʃ/",
        "name": "SH",
        "category": "Fricatives",
        "difficulty": "medium",
        "description": "The quiet 'sh' in 'ship'.",
        "tonguePosition": "Tongue raised toward the roof of the mouth, a little further back than for 's'.",
        "lipPosition": "Lips rounded and pushed forward.",
        "airflow": "Broad, steady stream of air with no voicing.",
        "examples": ["ship", "shoe", "fish", "wash", "ocean"],
        "tips": ["Pretend to tell someone to be quiet: 'shhh'.", "Push your lips out like a kiss."],
        "commonMistakes": ["Sounding like 's' (sip)", "Lips not rounded enough"],
    },
    {
        "id": "ch",
        "phoneme": "/tʃ/",
        "name": "CH",
        "category": "Affricates",
        "difficulty": "medium",
        "description": "The 'ch' in 'chair', a 't' stop released into 'sh'.",
        "tonguePosition": "Tongue blade presses behind the upper teeth, then releases.",
        "lipPosition": "Lips rounded and slightly forward.",
        "airflow": "Air builds up, then bursts out with friction; no voicing.",
        "examples": ["chair", "cheese", "watch", "lunch", "kitchen"],
        "tips": ["Say 't' and 'sh' quickly together.", "Sneeze like a train: 'choo choo'."],
        "commonMistakes": ["Sounding like 'sh' (share for chair)", "Sounding like 't'"],
    },
    {
        "id": "k",
        "phoneme": "/k/",
        "name": "K",
        "category": "Stops",
        "difficulty": "easy",
        "description": "The 'k' in 'cat', made at the back of the mouth.",
        "tonguePosition": "Back of the tongue lifts to touch the soft palate.",
        "lipPosition": "Lips relaxed and open.",
        "airflow": "Air is stopped and then released in a puff; no voicing.",
        "examples": ["cat", "kite", "book", "cookie", "duck"],
        "tips": ["Keep the tongue tip down behind the bottom teeth.", "Make a coughing 'k-k-k' sound."],
        "commonMistakes": ["Sounding like 't' (tat for cat)", "Dropping the sound at the end of words"],
    },
    {
        "id": "g",
        "phoneme": "/g/",
        "name": "G",
        "category": "Stops",
        "difficulty": "easy",
        "description": "The 'g' in 'go', the voiced partner of 'k'.",
        "tonguePosition": "Back of the tongue lifts to touch the soft palate.",
        "lipPosition": "Lips relaxed and open.",
        "airflow": "Air is stopped and released while the voice is on.",
        "examples": ["go", "game", "dog", "bag", "tiger"],
        "tips": ["Feel your throat buzz while you say it.", "Gargle a little water to feel the spot."],
        "commonMistakes": ["Sounding like 'd' (do for go)", "Sounding like 'k'"],
    },
    {
        "id": "p",
        "phoneme": "/p/",
        "name": "P",
        "category": "Stops",
        "difficulty": "easy",
        "description": "The 'p' in 'pop', made by closing and opening the lips.",
        "tonguePosition": "Tongue resting in a neutral position.",
        "lipPosition": "Lips press together, then pop open.",
        "airflow": "Air builds behind the lips and is released in a puff; no voicing.",
        "examples": ["pop", "pen", "apple", "cup", "happy"],
        "tips": ["Hold a tissue in front of your mouth and make it move.", "Pop your lips like a bubble."],
        "commonMistakes": ["Sounding like 'b'", "Too little air in the release"],
    },
    {
        "id": "b",
        "phoneme": "/b/",
        "name": "B",
        "category": "Stops",
        "difficulty": "easy",
        "description": "The 'b' in 'ball', the voiced partner of 'p'.",
        "tonguePosition": "Tongue resting in a neutral position.",
        "lipPosition": "Lips press together, then open.",
        "airflow": "Air is stopped at the lips and released while the voice is on.",
        "examples": ["ball", "baby", "bubble", "cab", "rabbit"],
        "tips": ["Touch your throat and feel it buzz.", "Say 'buh buh buh' like a motor boat."],
        "commonMistakes": ["Sounding like 'p'", "Sounding like 'm' when the nose is blocked"],
    },
    {
        "id": "f",
        "phoneme": "/f/",
        "name": "F",
        "category": "Fricatives",
        "difficulty": "easy",
        "description": "The 'f' in 'fish', made with the top teeth on the bottom lip.",
        "tonguePosition": "Tongue resting low in the mouth.",
        "lipPosition": "Upper teeth rest gently on the lower lip.",
        "airflow": "Air blows between the teeth and lip; no voicing.",
        "examples": ["fish", "fun", "coffee", "leaf", "phone"],
        "tips": ["Bite your bottom lip gently and blow.", "Pretend to blow out a candle slowly."],
        "commonMistakes": ["Sounding like 'p' (pish)", "Biting the lip too hard and stopping the air"],
    },
    {
        "id": "v",
        "phoneme": "/v/",
        "name": "V",
        "category": "Fricatives",
        "difficulty": "medium",
        "description": "The 'v' in 'van', the voiced partner of 'f'.",
        "tonguePosition": "Tongue resting low in the mouth.",
        "lipPosition": "Upper teeth rest gently on the lower lip.",
        "airflow": "Air flows between the teeth and lip while the voice buzzes.",
        "examples": ["van", "very", "seven", "love", "river"],
        "tips": ["Make an 'f' and turn your voice on.", "Feel your lip tickle as you buzz."],
        "commonMistakes": ["Sounding like 'b' (berry for very)", "Sounding like 'f'"],
    },
]

_GUIDES_BY_ID = {guide["id"]: guide for guide in PHONEME_GUIDES}


def list_guides(category: Optional[str] = None, difficulty: Optional[str] = None) -> List[Dict[str, Any]]:
    guides = PHONEME_GUIDES
    if category:
        guides = [guide for guide in guides if guide["category"].lower() == category.lower()]
    if difficulty:
        guides = [guide for guide in guides if guide["difficulty"] == difficulty]
    return copy.deepcopy(guides)


def get_guide(guide_id: str) -> Optional[Dict[str, Any]]:
    guide = _GUIDES_BY_ID.get(guide_id)
    return copy.deepcopy(guide) if guide else None
