"""
Vision Test Case Generator API

FastAPI backend that turns application screenshots (and optional OCR text,
element corrections and scenario context) into structured manual test cases
using a vision-capable LLM (Anthropic Claude, OpenAI or Google Gemini).

Pipeline:
- Fingerprint the ordered pages, corrections and scenario (cache key)
- Return a cached result when one exists, unless regeneration is forced
- Build the instruction text plus ordered page markers and images
- Call the provider, retrying only transient overload with capped backoff
- Extract and repair the JSON response into canonical test cases
- Bucket the cases by type for legacy consumers, then cache the result

Usage:
1. Set ANTHROPIC_API_KEY (or OPENAI_API_KEY / GEMINI_API_KEY and AI_PROVIDER) in .env
2. Install dependencies: pip install -e ".[test]"
3. Run the application: python main.py
4. Access API docs at: http://localhost:8000/api/v1/docs

API Endpoints:
- POST /api/v1/test-cases/generate - Generate test cases from uploaded screenshots
- POST /api/v1/test-cases/generate-with-corrections - Generate from OCR text with user-labelled elements
- GET /api/v1/health - Health check
- GET /api/v1/health/readiness - Provider configuration check

Architecture Components:

1. Controllers (vision_testgen/api/routes/):
   - Multipart and JSON request handling
   - Mapping of pipeline errors to HTTP status codes

2. Services (vision_testgen/services/):
   - Generation orchestration, caching and request coalescing
   - Prompt building, response normalization, categorization
   - Completion client with the retry policy

3. Repositories (vision_testgen/repositories/):
   - Completion provider interface
   - Anthropic, OpenAI and Gemini implementations

4. Models (vision_testgen/models/):
   - Pydantic schemas for requests, test cases and results

5. Core (vision_testgen/core/):
   - Result cache, error taxonomy, dependency injection

6. Configuration (vision_testgen/config/):
   - Environment-based settings
"""

__version__ = "1.0.0"
__description__ = "Screenshot-driven test case generation"
