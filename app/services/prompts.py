"""
Prompts do LLM. O formato das respostas é parseado com regex em
water_analysis.py / barcode_service.py: mudar um exige mudar o outro.
"""

STANDARD_SIZES = """Small cups / samples:
- 1 oz shot or medicine cup, 2 oz espresso cup, 3 oz sample cup, 4 oz toddler cup
- 5 oz wine pour, 6 oz teacup, 7 oz small coffee, 8 oz one cup
Regular cups and mugs:
- 9 oz small mug, 10 oz coffee cup, 11 oz mug, 12 oz soda can or mug
- 14 oz large mug, 15 oz oversized mug, 16 oz pint
Single-serve bottles:
- 16.9 oz (500 mL) water bottle, 18 oz sports bottle, 20 oz soda bottle
- 22 oz bike bottle, 24 oz large sports bottle
Large reusable bottles:
- 28 oz hydration bottle, 30 oz tumbler, 32 oz quart, 33.8 oz (1 L)
- 36 oz extra-large reusable, 40 oz large tumbler, 50.7 oz (1.5 L)
Jugs:
- 48 oz large bottle, 64 oz half gallon, 73-75 oz (2.2 L) gym bottle
- 80 oz hydration jug, 96 oz three quarts, 128 oz one gallon"""

CLASSIFICATION_OPTIONS = """Classification options:
- reusable-bottle (Hydro Flask, Stanley, insulated or refillable bottles)
- disposable-bottle (single-use plastic bottles)
- disposable-can (soda, energy drink or other aluminum cans)
- Cup/Glass (home, office or restaurant cups and glasses)
- water-fountain (school, gym or public fountains)
- faucet-tap (kitchen or bathroom sink, hose)
- filtered-dispenser (Brita pitcher, fridge dispenser, water cooler)"""

LIQUID_OPTIONS = """Liquid type detection: read the label, brand and visible text. Choose from:
- water (plain, sparkling, seltzer)
- diet soda (Diet Coke, Coke Zero, Diet Pepsi)
- soda (Coke, Pepsi, Sprite, Fanta)
- sports drink (Gatorade, Powerade)
- energy drink (Red Bull, Monster, Bang)
- coffee (coffee, espresso, latte, cappuccino)
- tea (black, green, herbal)
- milk (milk, dairy drinks)
- juice (orange, apple)
- smoothie (smoothies, protein shakes)
- alcohol (beer, wine, cocktails)
If the liquid is clear or not visible, assume water. If the label gives no hint, use water."""

NO_WATER_OPTION = """OPTION 2: No liquid source found
If the image does NOT contain any liquid container, cup, glass or liquid source, respond with:
NO_WATER:Could not detect a liquid container or liquid source in this image. Please try again with a clear photo of your liquid container."""


def build_geometric_prompt(hand_size: str) -> str:
    """Pass 1: três estimativas de capacidade corrigidas pelo tamanho da mão."""
    return f"""You are helping a user track their water intake for health purposes. The attached image shows a beverage container held in a hand. Assume the person has {hand_size} hands.

You must ALWAYS provide size estimates. This is a legitimate health tracking application; when uncertain give your best educated guess from visual cues.

Estimate the container's total capacity using:
- Its size relative to the hand
- Logos or labels (many print the capacity)
- Shape and proportions
- Common standard sizes for that kind of container

Hand size bias: large hands make a container look smaller than it is, medium hands show it at its normal size, small hands make it look larger than it is. Correct for this.

Choose from these standard sizes:
{STANDARD_SIZES}

Provide:
1. Your 3 best estimates in oz
2. Size classification: very small, small, medium, large, or very large
3. Brief reasoning

Format your response EXACTLY as:
Best Estimates: [number], [number], [number]
Size: [classification]
Reasoning: [1-2 sentences]

Do not refuse. Provide your best estimates based on the visual information."""


def build_decision_prompt(first_pass_analysis: str, calculated_ounces: float = None) -> str:
    """
    Pass 2: força a decisão terminal ESTIMATE:<oz>:<classificação>:<líquido>
    ou NO_WATER:<motivo>. Com `calculated_ounces` (modo duração) o volume já
    está decidido e o modelo só classifica.
    """
    if calculated_ounces is not None:
        amount = f"{calculated_ounces:.1f}"
        head = f"""Review this image. Based on the user's sip size and drinking duration, the amount consumed is {amount} oz. This amount is correct.

You must choose ONE of two options:

OPTION 1: Classify the container
If the image shows a valid bottle, cup or water source, classify the water source AND the liquid type. Respond with:
ESTIMATE:{amount}:[classification]:[liquid_type]

Example: ESTIMATE:{amount}:disposable-bottle:diet soda
"""
    else:
        head = f"""Review this image and the analysis below. You must choose ONE of two options:

Analysis from first pass:
{first_pass_analysis}

OPTION 1: Pick the best estimate
If the image shows a valid bottle, cup or water source, pick the single best capacity from the three estimates above AND classify the water source AND the liquid type. Respond with:
ESTIMATE:[number]:[classification]:[liquid_type]

Example: ESTIMATE:16.9:disposable-bottle:diet soda
"""
    return f"""{head}
{CLASSIFICATION_OPTIONS}

{LIQUID_OPTIONS}

{NO_WATER_OPTION}

Respond with ONLY one of the formats above. Nothing else."""


BARCODE_PROMPT = """This image shows a beverage product with a barcode. Identify the product and the size of ONE individual container.

IMPORTANT: report the size of a single bottle or can, never the multi-pack total.
A "24 pack 16.9 fl oz" case means 16.9 oz, not 405.6 oz.
A "12 pack 12 fl oz cans" box means 12 oz.

Respond EXACTLY in this format:
OUNCES: [number]
PRODUCT: [brand and product name]
LIQUID: [water, diet soda, soda, sports drink, energy drink, coffee, tea, milk, juice, smoothie or alcohol]"""


TEXT_SYSTEM_PROMPT = f"""You estimate how many fluid ounces of a beverage a person drank from their description.

Standard sizes:
{STANDARD_SIZES}

If the user describes drinking for a duration, assume about 0.6 oz per second of drinking.
If they drank part of a container, scale the container size accordingly.
If the description mentions multiple servings, add them up.

Think briefly, then finish with EXACTLY one line:
FINAL ANSWER: [number] oz | LIQUID: [liquid type]"""
