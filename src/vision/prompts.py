# src/vision/prompts.py - v1
"""Prompt templates for the vision analyzer."""

from __future__ import annotations

SYSTEM_PROMPT = "You are a retail product recognition assistant. Return only valid JSON."

EXTRACT_TEXT_PROMPT = """Extract all visible text from this product packaging image.
Respond with a JSON object:
{
  "productName": the product name as printed, or null,
  "brandName": the brand name, or null,
  "size": size or quantity (e.g. "12 oz", "500g"), or null,
  "category": a product category (e.g. "Beverages", "Snacks", "Dairy"), or null,
  "keywords": up to 10 other distinctive words,
  "text": all other visible text, concatenated,
  "confidence": 0.0-1.0, how legible and complete the text is
}
Do not guess text you cannot read."""

IDENTIFY_PRODUCT_PROMPT = """Identify this product and respond with a JSON object:
{
  "productName": "Full product name",
  "brandName": "Brand name",
  "size": "Size or quantity (e.g. '12 oz', '500g')",
  "category": "Product category (e.g. 'Beverages', 'Snacks', 'Dairy')",
  "keywords": ["keyword1", "keyword2"],
  "confidence": 0.85
}
Set confidence between 0.0 and 1.0 based on image clarity and your certainty.
Return ONLY the JSON object, no additional text."""

DIMENSION_PROMPT_TEMPLATE = """Analyze this product across 5 dimensions and return results in JSON format.

Product Context:
- Name: {name}
- Brand: {brand}
- Category: {category}

Analyze the following dimensions (score 0-100 for each):

1. Health: Nutritional value, beneficial ingredients, health impact
2. Processing and Preservatives: Level of processing, artificial additives, preservatives
3. Allergens: Common allergens present, cross-contamination risks
4. Responsibly Produced: Ethical sourcing, fair trade, labor practices
5. Environmental Impact: Packaging sustainability, carbon footprint, eco-friendliness

For each dimension, provide:
- score (0-100, where 100 is best)
- explanation (max 100 words)
- keyFactors (array of 2-4 key points)

Also provide an overallConfidence score (0.0-1.0) for the analysis.

Return JSON in this exact format:
{{
  "dimensions": {{
    "health": {{ "score": 0-100, "explanation": "...", "keyFactors": ["..."] }},
    "processing": {{ "score": 0-100, "explanation": "...", "keyFactors": ["..."] }},
    "allergens": {{ "score": 0-100, "explanation": "...", "keyFactors": ["..."] }},
    "responsiblyProduced": {{ "score": 0-100, "explanation": "...", "keyFactors": ["..."] }},
    "environmentalImpact": {{ "score": 0-100, "explanation": "...", "keyFactors": ["..."] }}
  }},
  "overallConfidence": 0.0-1.0
}}

Return ONLY the JSON object, no additional text."""
